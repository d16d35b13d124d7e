"""
配置模块 - 从环境变量 / .env 读取数据库与日志设置
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _build_dsn(driver, host, port, name, charset):
    if driver == "sqlite":
        return f"sqlite:{name}"
    return f"mysql:host={host};port={port};dbname={name};charset={charset}"


class Config:
    """Application settings, resolved once at import time."""

    DB_DRIVER = os.getenv("DB_DRIVER", "mysql")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = int(os.getenv("DB_PORT", "3306"))
    DB_NAME = os.getenv("DB_NAME", "app")
    DB_USER = os.getenv("DB_USER", "root")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")
    DB_PREFIX = os.getenv("DB_PREFIX", "")
    DB_CHARSET = os.getenv("DB_CHARSET", "utf8mb4")
    DB_DSN = os.getenv("DB_DSN") or _build_dsn(DB_DRIVER, DB_HOST, DB_PORT, DB_NAME, DB_CHARSET)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    IP_LOOKUP_URL = os.getenv("IP_LOOKUP_URL", "http://whatismyipaddress.com/ip/")
