"""SQLite persistence handle and unit-of-work boundary."""

from __future__ import annotations

import contextlib
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, TypeVar

from writeflow_service.core.exceptions import StorageError
from writeflow_service.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS writers (
    writer_id TEXT PRIMARY KEY,
    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    task_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    subject TEXT NOT NULL,
    pages INTEGER NOT NULL CHECK (pages >= 1),
    budget INTEGER NOT NULL CHECK (budget >= 1),
    deadline TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'open'
        CHECK (status IN ('open', 'assigned', 'in_progress', 'completed', 'cancelled')),
    assigned_writer_id TEXT REFERENCES writers(writer_id),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (
        (assigned_writer_id IS NOT NULL)
        = (status IN ('assigned', 'in_progress', 'completed'))
    )
);

CREATE INDEX IF NOT EXISTS ix_tasks_status_created
    ON tasks(status, created_at);

CREATE TABLE IF NOT EXISTS bids (
    bid_id TEXT PRIMARY KEY,
    task_id TEXT NOT NULL REFERENCES tasks(task_id) ON DELETE RESTRICT,
    writer_id TEXT NOT NULL REFERENCES writers(writer_id),
    amount INTEGER NOT NULL CHECK (amount >= 1),
    proposal TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'approved', 'rejected')),
    created_at TEXT NOT NULL,
    resolved_at TEXT,
    UNIQUE (task_id, writer_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_bids_one_approved_per_task
    ON bids(task_id)
    WHERE status = 'approved';

CREATE INDEX IF NOT EXISTS ix_bids_writer_created
    ON bids(writer_id, created_at);

CREATE TABLE IF NOT EXISTS transactions (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    tx_id TEXT NOT NULL UNIQUE,
    writer_id TEXT NOT NULL REFERENCES writers(writer_id),
    amount INTEGER NOT NULL CHECK (amount <> 0),
    type TEXT NOT NULL CHECK (type IN ('earning', 'withdrawal', 'bonus', 'penalty')),
    description TEXT NOT NULL,
    balance_after INTEGER NOT NULL CHECK (balance_after >= 0),
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_transactions_writer_created
    ON transactions(writer_id, created_at);

CREATE TRIGGER IF NOT EXISTS trg_transactions_append_only_update
    BEFORE UPDATE ON transactions
BEGIN
    SELECT RAISE(ABORT, 'transactions are append-only');
END;

CREATE TRIGGER IF NOT EXISTS trg_transactions_append_only_delete
    BEFORE DELETE ON transactions
BEGIN
    SELECT RAISE(ABORT, 'transactions are append-only');
END;
"""


def now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return to_iso(datetime.now(UTC))


def to_iso(moment: datetime) -> str:
    """Normalise an aware datetime to the stored UTC format (sortable as text)."""
    return moment.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


class Database:
    """
    Injected SQLite handle shared by the registries and engines.

    Every multi-record mutation goes through atomic(), which runs a closure
    between BEGIN IMMEDIATE and COMMIT. BEGIN IMMEDIATE takes the database
    write lock up front, so units from other connections (including other
    processes on the same file) are serialised by SQLite itself. The RLock
    only serialises threads sharing this one connection.
    """

    def __init__(self, db_path: str, busy_timeout_ms: int = 5000) -> None:
        self._lock = RLock()
        self._logger = get_logger(__name__)
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._db.row_factory = sqlite3.Row
        self._db.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._db.executescript(_SCHEMA)

    def atomic(self, work: Callable[[sqlite3.Connection], T]) -> T:
        """
        Run work(connection) as one all-or-nothing unit.

        Any exception rolls the unit back. Business errors raised by the
        closure propagate unchanged; SQLite operational failures (locked
        database past busy_timeout, I/O errors, lost file) surface as
        StorageError so callers can retry the whole operation.

        A call made while a unit is already open on this handle joins that
        unit instead of starting a new one.
        """
        with self._lock:
            if self._db.in_transaction:
                return work(self._db)

            try:
                self._db.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as exc:
                self._logger.warning("Could not open unit of work", extra={"error": str(exc)})
                raise StorageError(
                    "STORAGE_UNAVAILABLE",
                    "Storage is temporarily unavailable",
                ) from exc

            try:
                result = work(self._db)
                self._db.execute("COMMIT")
            except sqlite3.IntegrityError:
                self._rollback()
                raise
            except sqlite3.DatabaseError as exc:
                self._rollback()
                self._logger.warning("Unit of work aborted", extra={"error": str(exc)})
                raise StorageError(
                    "STORAGE_UNAVAILABLE",
                    "Storage is temporarily unavailable",
                ) from exc
            except BaseException:
                self._rollback()
                raise
            return result

    def read(self, work: Callable[[sqlite3.Connection], T]) -> T:
        """Run a read-only closure against the connection."""
        with self._lock:
            try:
                return work(self._db)
            except sqlite3.IntegrityError:
                raise
            except sqlite3.DatabaseError as exc:
                raise StorageError(
                    "STORAGE_UNAVAILABLE",
                    "Storage is temporarily unavailable",
                ) from exc

    def _rollback(self) -> None:
        with contextlib.suppress(sqlite3.Error):
            self._db.execute("ROLLBACK")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
