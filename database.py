"""Process-wide access to the shared `db_backend.db` instance.

Code that wants one connection per process calls `get_instance()` / `free()`
here instead of passing a `Database` around. Both delegate to `db`, so the
configuration, handle and counters are the ones `db_backend.db` holds.
"""

from db_backend import db


def get_instance(dsn=None, username=None, password=None, driver_options=None, prefix=None):
    return db.get_instance(dsn, username, password, driver_options, prefix)


def free(cursor=None, close_connection=True):
    db.free(cursor, close_connection)


__all__ = ["db", "get_instance", "free"]
