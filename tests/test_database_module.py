"""Tests for the process-wide accessors in ``database``."""

from __future__ import annotations

import pytest

import database
from db_backend import Database


@pytest.fixture
def shared_db(monkeypatch: pytest.MonkeyPatch) -> Database:
    instance = Database()
    monkeypatch.setattr(database, "db", instance)
    return instance


def test_get_instance_configures_shared_db_once(shared_db: Database) -> None:
    try:
        handle = database.get_instance("sqlite::memory:", prefix="app_")

        assert database.get_instance("sqlite:/tmp/ignored.sqlite3", prefix="other_") is handle
        assert shared_db.prefix("users", True) == "app_users"
    finally:
        database.free()


def test_free_then_get_instance_opens_new_handle(shared_db: Database) -> None:
    first = database.get_instance("sqlite::memory:")
    shared_db.query_fetch_col_assoc("SELECT 1")

    database.free()
    second = database.get_instance()

    try:
        assert second is not first
        assert shared_db.query_count() == 1
    finally:
        database.free()


def test_module_db_is_lazy() -> None:
    import db_backend

    assert isinstance(db_backend.db, Database)
    assert db_backend.db.connection is None
