"""Persistence handle and unit-of-work tests."""

from __future__ import annotations

import sqlite3

import pytest

from writeflow_service.core.exceptions import NotFoundError, StorageError
from writeflow_service.services.database import Database, now_iso

pytestmark = pytest.mark.unit


def _insert_writer(conn: sqlite3.Connection, writer_id: str, balance: int = 0) -> None:
    conn.execute(
        "INSERT INTO writers (writer_id, balance, created_at) VALUES (?, ?, ?)",
        (writer_id, balance, now_iso()),
    )


def _writer_count(database: Database) -> int:
    return database.read(lambda conn: conn.execute("SELECT COUNT(*) FROM writers").fetchone()[0])


def test_atomic_commits_all_writes(database):
    def work(conn):
        _insert_writer(conn, "w-1")
        _insert_writer(conn, "w-2")
        return "done"

    assert database.atomic(work) == "done"
    assert _writer_count(database) == 2


def test_atomic_rolls_back_on_business_error(database):
    def work(conn):
        _insert_writer(conn, "w-1")
        raise NotFoundError("TASK_NOT_FOUND", "Task not found")

    with pytest.raises(NotFoundError):
        database.atomic(work)
    assert _writer_count(database) == 0


def test_atomic_propagates_integrity_errors_after_rollback(database):
    def work(conn):
        _insert_writer(conn, "w-1")
        _insert_writer(conn, "w-1")

    with pytest.raises(sqlite3.IntegrityError):
        database.atomic(work)
    assert _writer_count(database) == 0


def test_atomic_maps_operational_errors_to_storage_error(database):
    def work(conn):
        _insert_writer(conn, "w-1")
        raise sqlite3.OperationalError("disk I/O error")

    with pytest.raises(StorageError) as exc_info:
        database.atomic(work)
    assert exc_info.value.error == "STORAGE_UNAVAILABLE"
    assert exc_info.value.status_code == 503
    assert _writer_count(database) == 0


def test_nested_atomic_joins_the_outer_unit(database):
    def inner(conn):
        _insert_writer(conn, "w-inner")

    def outer(conn):
        database.atomic(inner)
        _insert_writer(conn, "w-outer")
        raise NotFoundError("WRITER_NOT_FOUND", "Writer not found")

    with pytest.raises(NotFoundError):
        database.atomic(outer)
    assert _writer_count(database) == 0


def test_begin_fails_fast_with_storage_error_when_locked(db_path):
    holder = Database(db_path=db_path)
    waiter = Database(db_path=db_path, busy_timeout_ms=50)
    try:
        holder._db.execute("BEGIN IMMEDIATE")
        with pytest.raises(StorageError):
            waiter.atomic(lambda conn: _insert_writer(conn, "w-1"))
        holder._db.execute("ROLLBACK")
    finally:
        holder.close()
        waiter.close()


def test_transactions_table_is_append_only(database):
    def seed(conn):
        _insert_writer(conn, "w-1", balance=500)
        conn.execute(
            "INSERT INTO transactions (tx_id, writer_id, amount, type, description, "
            "balance_after, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            ("tx-1", "w-1", 500, "earning", "payout", 500, now_iso()),
        )

    database.atomic(seed)

    with pytest.raises(sqlite3.IntegrityError, match="append-only"):
        database.atomic(lambda conn: conn.execute("UPDATE transactions SET amount = 1"))
    with pytest.raises(sqlite3.IntegrityError, match="append-only"):
        database.atomic(lambda conn: conn.execute("DELETE FROM transactions"))


def test_negative_balance_is_rejected_by_schema(database):
    with pytest.raises(sqlite3.IntegrityError):
        database.atomic(lambda conn: _insert_writer(conn, "w-1", balance=-1))


def test_assigned_task_requires_writer_in_schema(database):
    def insert_assigned_without_writer(conn):
        now = now_iso()
        conn.execute(
            "INSERT INTO tasks (task_id, title, description, subject, pages, budget, deadline, "
            "status, assigned_writer_id, created_at, updated_at) "
            "VALUES ('t-1', 'T', 'D', 'S', 1, 100, ?, 'assigned', NULL, ?, ?)",
            (now, now, now),
        )

    with pytest.raises(sqlite3.IntegrityError):
        database.atomic(insert_assigned_without_writer)


def test_now_iso_is_utc_with_z_suffix():
    stamp = now_iso()
    assert stamp.endswith("Z")
    assert "T" in stamp
