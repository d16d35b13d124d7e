"""
MySQL 备份服务 - 导出整个数据库为 SQL 脚本（可选 gzip / bz2 压缩）
"""
import bz2
import datetime
import gzip
import os

import mysql.connector

from utils.logger import get_logger
from utils.sql import quote_identifier, to_sql_literal

logger = get_logger(__name__)


class MySQLBackup:
    """Dump every table and view of one MySQL database to a file."""

    FORMATS = ("sql", "gz", "bz2")
    BATCH_SIZE = 500

    def __init__(self, host, username, password, database, path, fmt="sql", port=3306):
        self.host = host
        self.username = username
        self.password = password
        self.database = database
        self.path = path
        self.format = (fmt or "sql").lower()
        self.port = port

    def _open(self, path):
        if self.format == "gz":
            return gzip.open(path, "wt", encoding="utf-8")
        if self.format == "bz2":
            return bz2.open(path, "wt", encoding="utf-8")
        return open(path, "w", encoding="utf-8")

    def _connect(self):
        return mysql.connector.connect(
            host=self.host,
            port=self.port,
            user=self.username,
            password=self.password,
            database=self.database,
        )

    def backup(self):
        """
        执行备份

        The dump is written to ``<path>.part`` and renamed to ``path`` only once
        it is complete; a failed backup leaves nothing at ``path``.

        Returns:
            写入的备份文件路径
        """
        if self.format not in self.FORMATS:
            raise ValueError(f'The backup format "{self.format}" is invalid!')

        logger.info(f"开始备份数据库 {self.database} -> {self.path} ({self.format})")

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        partial_path = self.path + ".part"
        conn = self._connect()
        try:
            meta = conn.cursor(buffered=True)
            tables = self._list(meta, "BASE TABLE")
            views = self._list(meta, "VIEW")

            with self._open(partial_path) as handle:
                handle.write(f"-- Database: {quote_identifier(self.database)}\n")
                handle.write(f"-- Host: {self.host}\n")
                handle.write(f"-- Generated: {datetime.datetime.now().isoformat(timespec='seconds')}\n\n")
                # Literals below use backslash escapes, so the restoring session must not run NO_BACKSLASH_ESCAPES.
                handle.write("SET SQL_MODE = 'NO_AUTO_VALUE_ON_ZERO';\n")
                handle.write("SET FOREIGN_KEY_CHECKS = 0;\n\n")

                for table in tables:
                    self._dump_table(conn, meta, table, handle)
                for view in views:
                    self._dump_view(meta, view, handle)

                handle.write("SET FOREIGN_KEY_CHECKS = 1;\n")

            meta.close()
            os.replace(partial_path, self.path)
        except Exception:
            if os.path.exists(partial_path):
                os.remove(partial_path)
            logger.error(f"❌ 数据库备份失败: {self.path}")
            raise
        finally:
            conn.close()

        logger.info(f"✅ 数据库备份完成: {self.path}, 共 {len(tables)} 张表, {len(views)} 个视图")
        return self.path

    def _list(self, cursor, table_type):
        cursor.execute(f"SHOW FULL TABLES WHERE Table_type = '{table_type}'")
        return [row[0] for row in cursor.fetchall()]

    def _dump_table(self, conn, meta, table, handle):
        name = quote_identifier(table)
        meta.execute(f"SHOW CREATE TABLE {name}")
        create_statement = meta.fetchone()[1]

        handle.write(f"DROP TABLE IF EXISTS {name};\n")
        handle.write(f"{create_statement};\n\n")

        rows = conn.cursor()
        try:
            rows.execute(f"SELECT * FROM {name}")
            columns = ", ".join(quote_identifier(column) for column in rows.column_names)
            row_count = 0
            batch = rows.fetchmany(self.BATCH_SIZE)
            while batch:
                for row in batch:
                    values = ", ".join(to_sql_literal(value) for value in row)
                    handle.write(f"INSERT INTO {name} ({columns}) VALUES ({values});\n")
                row_count += len(batch)
                batch = rows.fetchmany(self.BATCH_SIZE)
        finally:
            rows.close()

        if row_count:
            handle.write("\n")
        logger.debug(f"已导出表 {table}: {row_count} 行")

    def _dump_view(self, meta, view, handle):
        name = quote_identifier(view)
        meta.execute(f"SHOW CREATE VIEW {name}")
        create_statement = meta.fetchone()[1]

        handle.write(f"DROP VIEW IF EXISTS {name};\n")
        handle.write(f"{create_statement};\n\n")
        logger.debug(f"已导出视图 {view}")
