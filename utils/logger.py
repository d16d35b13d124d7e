"""
日志工具 - 统一的 logger 获取入口
"""
import logging

from config import Config


def get_logger(name):
    """Return a module logger with a single stream handler attached."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Config.LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO))
    return logger
