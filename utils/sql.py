"""
SQL 字面量工具 - 为 MySQL / SQLite 生成安全的字符串字面量
"""
import datetime
from decimal import Decimal

from mysql.connector.conversion import MySQLConverter

_converter = MySQLConverter()

_MICROSECOND = datetime.timedelta(microseconds=1)


def quote_identifier(name):
    return "`" + str(name).replace("`", "``") + "`"


def quote_string(value, backend="mysql", sql_mode=None):
    """
    Wrap ``value`` in single quotes using the escaping rules of ``backend``.

    For MySQL the driver's converter does the escaping, so ``sql_mode``
    (e.g. NO_BACKSLASH_ESCAPES) decides between backslash and doubled quotes.
    """
    if backend == "sqlite":
        return "'" + str(value).replace("'", "''") + "'"
    return "'" + _converter.escape(str(value), sql_mode) + "'"


def format_duration(value):
    """Render a timedelta as a MySQL TIME value: [-]HH:MM:SS[.ffffff]."""
    sign = "-" if value < datetime.timedelta(0) else ""
    micros = abs(value) // _MICROSECOND
    hours, rest = divmod(micros, 3600 * 1000000)
    minutes, rest = divmod(rest, 60 * 1000000)
    seconds, micros = divmod(rest, 1000000)
    text = f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"
    if micros:
        text += f".{micros:06d}"
    return text


def to_sql_literal(value, backend="mysql", sql_mode=None):
    """Render a Python value fetched from a cursor as an SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex() if value else "''"
    if isinstance(value, datetime.timedelta):
        return "'" + format_duration(value) + "'"
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return "'" + str(value) + "'"
    return quote_string(value, backend, sql_mode)
