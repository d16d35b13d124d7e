import contextlib
import enum
import sqlite3
from sqlite3 import Error as SQLiteError
from time import perf_counter

import mysql.connector
from mysql.connector import Error as MySQLError

from config import Config
from services.mysql_backup import MySQLBackup
from utils.logger import get_logger
from utils.sql import quote_identifier, quote_string

logger = get_logger(__name__)

DRIVERS = ("mysql", "sqlite")

PARAM_NULL = 0
PARAM_INT = 1
PARAM_STR = 2
PARAM_BOOL = 5

ATTR_AUTOCOMMIT = "autocommit"
ATTR_DRIVER_NAME = "driver_name"
ATTR_SERVER_VERSION = "server_version"
ATTR_CLIENT_VERSION = "client_version"

_DSN_KEYS = {
    "host": "host",
    "port": "port",
    "dbname": "database",
    "database": "database",
    "charset": "charset",
    "unix_socket": "unix_socket",
}


class BackupEngine(enum.Enum):
    MYSQL = "MySQL"


def _backup_engine_class(engine):
    return {BackupEngine.MYSQL: MySQLBackup}[engine]


def parse_dsn(dsn):
    """
    解析 DSN 字符串

    Supported forms::

        mysql:host=localhost;port=3306;dbname=app;charset=utf8mb4
        sqlite:/path/to/file.sqlite3
        sqlite::memory:

    Returns:
        (driver, params) where params are keyword arguments for the driver
    """
    if not dsn or ":" not in dsn:
        raise ValueError(f"Invalid DSN: {dsn!r}")

    driver, _, body = dsn.partition(":")
    driver = driver.strip().lower()

    if driver == "sqlite":
        return driver, {"database": body or ":memory:"}

    if driver != "mysql":
        raise ValueError(f'The driver "{driver}" is not supported')

    params = {}
    for part in body.split(";"):
        if not part.strip():
            continue
        key, _, value = part.partition("=")
        key = key.strip().lower()
        if key not in _DSN_KEYS:
            logger.warning(f"⚠️ 忽略未知的 DSN 参数: {key}")
            continue
        value = value.strip()
        params[_DSN_KEYS[key]] = int(value) if key == "port" else value
    return driver, params


def _row_to_dict(row):
    if row is None:
        return None
    if isinstance(row, dict):
        return row
    if hasattr(row, "keys"):
        return {key: row[key] for key in row.keys()}
    return row


class Statement:
    """A cursor bound to one SQL statement, returned by prepare() and query()."""

    def __init__(self, cursor, sql):
        self.cursor = cursor
        self.sql = sql

    def execute(self, params=None):
        if params is None:
            self.cursor.execute(self.sql)
        else:
            if isinstance(params, list):
                params = tuple(params)
            self.cursor.execute(self.sql, params)
        return True

    @property
    def row_count(self):
        return max(self.cursor.rowcount, 0)

    def fetch(self):
        return _row_to_dict(self.cursor.fetchone())

    def fetch_all(self):
        return [_row_to_dict(row) for row in self.cursor.fetchall()]

    def fetch_column(self, column=0):
        row = self.cursor.fetchone()
        if row is None:
            return None
        if isinstance(row, dict):
            row = list(row.values())
        return row[column]

    def close_cursor(self):
        self.cursor.close()
        return True

    def __iter__(self):
        row = self.fetch()
        while row is not None:
            yield row
            row = self.fetch()


class Database:
    """
    Thin facade over a single MySQL or SQLite connection.

    The handle is opened lazily by get_instance() and released by free().
    exec/query/execute (and the query_fetch_* helpers built on query) add one
    to the query counter and their wall-clock duration to the running time.

    Instances are not thread-safe; callers sharing one across threads must
    serialise access themselves.
    """

    def __init__(self, dsn=None, username=None, password=None, driver_options=None, prefix=None,
                 clock=perf_counter):
        self.dsn = dsn
        self.username = username
        self.password = password
        self.driver_options = driver_options
        self.table_prefix = prefix or ""
        self.clock = clock

        self.backend = None
        self.connection = None
        self.backup_path = None
        self.backup_format = None

        self._count = 0
        self._time = 0.0
        self._last_error = None

    @classmethod
    def from_config(cls):
        return cls(
            dsn=Config.DB_DSN,
            username=Config.DB_USER,
            password=Config.DB_PASSWORD,
            prefix=Config.DB_PREFIX,
        )

    def get_instance(self, dsn=None, username=None, password=None, driver_options=None, prefix=None):
        """Return the open connection, creating it on first use.

        Arguments only matter before the connection exists: each non-empty one
        replaces the stored value. Once connected they are ignored.
        """
        if self.connection is None:
            if dsn:
                self.dsn = dsn
            if username:
                self.username = username
            if password:
                self.password = password
            if driver_options:
                self.driver_options = driver_options
            if prefix:
                self.table_prefix = prefix

            self.connection = self._connect()

        return self.connection

    def _connect(self):
        if not self.dsn:
            raise ValueError("No DSN configured for the database connection")

        driver, params = parse_dsn(self.dsn)
        options = dict(self.driver_options or {})

        try:
            if driver == "mysql":
                kwargs = dict(params)
                if self.username is not None:
                    kwargs["user"] = self.username
                if self.password is not None:
                    kwargs["password"] = self.password
                kwargs["autocommit"] = True
                kwargs.update(options)
                conn = mysql.connector.connect(**kwargs)
            else:
                options.setdefault("check_same_thread", False)
                conn = sqlite3.connect(params["database"], isolation_level=None, **options)
                conn.row_factory = sqlite3.Row
        except (MySQLError, SQLiteError) as err:
            self._last_error = err
            logger.error(f"❌ 数据库连接失败 ({driver}): {err}")
            raise

        self.backend = driver
        self._last_error = None
        logger.info(f"✅ 数据库连接已建立 ({driver})")
        return conn

    @contextlib.contextmanager
    def _capture_errors(self):
        self._last_error = None
        try:
            yield
        except (MySQLError, SQLiteError) as err:
            self._last_error = err
            logger.error(f"❌ SQL 执行失败: {err}")
            raise

    def _track(self, operation, *args):
        start = self.clock()
        try:
            with self._capture_errors():
                return operation(*args)
        finally:
            self._count += 1
            self._time += round(self.clock() - start, 6)

    def _cursor(self):
        conn = self.get_instance()
        if self.backend == "mysql":
            return conn.cursor(dictionary=True, buffered=True)
        return conn.cursor()

    def _normalize_query(self, query):
        if self.backend != "sqlite":
            return query
        return query.replace("%s", "?")

    def begin_transaction(self):
        conn = self.get_instance()
        with self._capture_errors():
            if self.backend == "mysql":
                conn.start_transaction()
            else:
                conn.execute("BEGIN")
        return True

    def commit(self):
        conn = self.get_instance()
        with self._capture_errors():
            conn.commit()
        return True

    def rollback(self):
        conn = self.get_instance()
        with self._capture_errors():
            conn.rollback()
        return True

    def error_code(self):
        """SQLSTATE of the last operation, "00000" when it succeeded."""
        return self.error_info()[0]

    def error_info(self):
        err = self._last_error
        if err is None:
            return ("00000", None, None)
        if isinstance(err, MySQLError):
            return (err.sqlstate or "HY000", err.errno, err.msg)
        return ("HY000", getattr(err, "sqlite_errorcode", None), str(err))

    def exec(self, statement):
        """Run a statement and return the number of affected rows."""
        return self._track(self._exec, statement)

    def _exec(self, statement):
        cursor = self._cursor()
        try:
            cursor.execute(statement)
            return max(cursor.rowcount, 0)
        finally:
            cursor.close()

    def query(self, statement):
        """Run a statement and return its open Statement."""
        return self._track(self._query, statement)

    def _query(self, statement):
        stmt = Statement(self._cursor(), statement)
        stmt.execute()
        return stmt

    def prepare(self, statement):
        with self._capture_errors():
            cursor = self._cursor()
            return Statement(cursor, self._normalize_query(statement))

    def execute(self, statement, params=None):
        """Execute a Statement from prepare(), or an SQL string with %s placeholders."""
        if isinstance(statement, Statement):
            return self._track(statement.execute, params)

        stmt = self.prepare(statement)
        try:
            return self._track(stmt.execute, params)
        finally:
            stmt.close_cursor()

    def get_attribute(self, attribute):
        conn = self.get_instance()
        if attribute == ATTR_DRIVER_NAME:
            return self.backend
        if attribute == ATTR_AUTOCOMMIT:
            if self.backend == "mysql":
                return bool(conn.autocommit)
            return conn.isolation_level is None
        if attribute == ATTR_SERVER_VERSION:
            if self.backend == "mysql":
                return conn.get_server_info()
            return sqlite3.sqlite_version
        if attribute == ATTR_CLIENT_VERSION:
            if self.backend == "mysql":
                return mysql.connector.__version__
            return sqlite3.sqlite_version
        raise ValueError(f'Unknown attribute "{attribute}"')

    def set_attribute(self, attribute, value):
        conn = self.get_instance()
        if attribute != ATTR_AUTOCOMMIT:
            raise ValueError(f'Attribute "{attribute}" cannot be changed')
        if self.backend == "mysql":
            conn.autocommit = bool(value)
        else:
            conn.isolation_level = None if value else ""
        return True

    def get_available_drivers(self):
        return list(DRIVERS)

    def last_insert_id(self, name=None):
        """
        ID of the last inserted row.

        ``name`` is accepted for sequence-based drivers; MySQL and SQLite ignore it.
        """
        self.get_instance()
        sql = "SELECT LAST_INSERT_ID()" if self.backend == "mysql" else "SELECT last_insert_rowid()"
        with self._capture_errors():
            stmt = Statement(self._cursor(), sql)
            stmt.execute()
            value = stmt.fetch_column()
            stmt.close_cursor()
        return str(value)

    def quote(self, value, param_type=PARAM_STR):
        conn = self.get_instance()
        if param_type == PARAM_NULL and value is None:
            return "NULL"
        if param_type == PARAM_INT:
            return str(int(value))
        if param_type == PARAM_BOOL:
            return "1" if value else "0"
        if self.backend == "mysql":
            return quote_string(value, "mysql", conn.sql_mode)
        return quote_string(value, self.backend)

    def query_fetch_all_assoc(self, statement):
        stmt = self.query(statement)
        try:
            return stmt.fetch_all()
        finally:
            stmt.close_cursor()

    def query_fetch_row_assoc(self, statement):
        stmt = self.query(statement)
        try:
            return stmt.fetch()
        finally:
            stmt.close_cursor()

    def query_fetch_col_assoc(self, statement):
        stmt = self.query(statement)
        try:
            return stmt.fetch_column()
        finally:
            stmt.close_cursor()

    def query_count(self):
        return self._count

    def time(self):
        return self._time

    def reset_metrics(self):
        self._count = 0
        self._time = 0.0

    def prefix(self, table="", trim=False):
        """
        加上表前缀

        With an empty ``table`` only the prefix is returned. Otherwise the
        prefixed name is surrounded by single spaces unless ``trim`` is set.
        """
        if table == "":
            return self.table_prefix
        space = "" if trim else " "
        return f"{space}{self.table_prefix}{table}{space}"

    def free(self, cursor=None, close_connection=True):
        """Close ``cursor`` if given, then release the connection.

        Counters survive a release; use reset_metrics() to clear them.
        """
        if cursor is not None:
            if isinstance(cursor, Statement):
                cursor.close_cursor()
            else:
                cursor.close()

        if close_connection and self.connection is not None:
            self.connection.close()
            self.connection = None
            self.backend = None
            logger.info("数据库连接已释放")

    def show_tables(self):
        self.get_instance()
        if self.backend == "mysql":
            return self.query("SHOW TABLES")
        return self.query(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )

    def table_names(self):
        tables = self.show_tables()
        names = []
        try:
            name = tables.fetch_column()
            while name is not None:
                names.append(name)
                name = tables.fetch_column()
        finally:
            tables.close_cursor()
        return names

    def _maintain(self, command):
        names = self.table_names()
        for name in names:
            self.query(f"{command} {quote_identifier(name)}").close_cursor()
        logger.info(f"✅ {command} 完成, 共 {len(names)} 张表")

    def optimize(self):
        self.get_instance()
        # SQLite has no OPTIMIZE TABLE; ANALYZE refreshes the planner statistics per table.
        self._maintain("OPTIMIZE TABLE" if self.backend == "mysql" else "ANALYZE")

    def repair(self):
        self.get_instance()
        self._maintain("REPAIR TABLE" if self.backend == "mysql" else "REINDEX")

    def backup(self, kind, path, fmt):
        """
        创建数据库备份

        Args:
            kind: backup engine name, see BackupEngine
            path: file the dump is written to
            fmt: output format understood by the engine ("sql", "gz", "bz2")

        Raises:
            ValueError: ``kind`` is not a known engine
        """
        try:
            engine = BackupEngine(kind)
        except ValueError:
            raise ValueError(f'The backup engine "{kind}" is invalid!') from None

        self.backup_path = path
        self.backup_format = fmt

        params = {}
        if self.dsn:
            driver, params = parse_dsn(self.dsn)
            if driver != "mysql":
                params = {}

        dumper = _backup_engine_class(engine)(
            params.get("host", Config.DB_HOST),
            self.username,
            self.password,
            params.get("database", Config.DB_NAME),
            self.backup_path,
            self.backup_format,
            port=params.get("port", Config.DB_PORT),
        )
        logger.info(f"开始 {engine.value} 备份: {path}")
        return dumper.backup()


db = Database.from_config()
