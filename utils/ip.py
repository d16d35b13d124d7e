"""
IP 工具 - 获取客户端 IP 地址并生成查询链接
"""
import os
import re

from flask import has_request_context, request

from config import Config

LOOPBACK = "127.0.0.1"

# Loose shape check for IPv4 / IPv6, not a strict parse.
IP_PATTERN = re.compile(r"^[0-9A-Fa-f:.]{7,}$")

# WSGI / CGI names, highest priority first.
CANDIDATE_KEYS = ("HTTP_X_FORWARDED_FOR", "HTTP_CLIENT_IP", "REMOTE_ADDR")


def _first_candidate(source):
    for key in CANDIDATE_KEYS:
        value = (source.get(key) or "").strip()
        if not value:
            continue
        if key == "HTTP_X_FORWARDED_FOR":
            # "client, proxy1, proxy2"
            value = value.split(",")[0].strip()
        return value
    return ""


def resolve(source):
    """
    从候选字段中选出客户端 IP

    Args:
        source: mapping holding any of CANDIDATE_KEYS (a WSGI environ, os.environ, or a dict)

    Returns:
        The first non-empty candidate if it looks like an address, else LOOPBACK
    """
    candidate = _first_candidate(source)
    return candidate if IP_PATTERN.match(candidate) else LOOPBACK


def get_ip():
    """Client IP of the active Flask request, or of the process environment outside one."""
    if has_request_context():
        return resolve(request.environ)
    return resolve(os.environ)


def api_url(ip=None):
    return Config.IP_LOOKUP_URL + (ip or get_ip())
