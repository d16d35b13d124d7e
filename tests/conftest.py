"""Shared fixtures for the test suite."""

from __future__ import annotations

from typing import Iterator

import pytest

from db_backend import Database


@pytest.fixture
def sqlite_db() -> Iterator[Database]:
    database = Database("sqlite::memory:", prefix="app_")
    yield database
    database.free()


@pytest.fixture
def users_db(sqlite_db: Database) -> Database:
    sqlite_db.exec("CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL)")
    sqlite_db.exec("INSERT INTO users (name) VALUES ('ann'), ('bob')")
    sqlite_db.reset_metrics()
    return sqlite_db
