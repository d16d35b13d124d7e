"""
外部协作服务
"""
from services.mysql_backup import MySQLBackup

__all__ = ["MySQLBackup"]
