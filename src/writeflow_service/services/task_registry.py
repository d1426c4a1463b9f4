"""Task registry: creation, lookup, edits and non-bid lifecycle transitions."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from writeflow_service.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from writeflow_service.logging import get_logger
from writeflow_service.models import (
    TERMINAL_TASK_STATUSES,
    BidStatus,
    Task,
    TaskStatus,
    parse_enum,
    transition_task,
)
from writeflow_service.money import require_min_cents, to_cents
from writeflow_service.services.database import now_iso, to_iso

if TYPE_CHECKING:
    import sqlite3

    from writeflow_service.services.database import Database

_TASK_SELECT_SQL = (
    "SELECT t.task_id, t.title, t.description, t.subject, t.pages, t.budget, t.deadline, "
    "t.status, t.assigned_writer_id, t.created_at, t.updated_at, "
    "(SELECT COUNT(*) FROM bids b WHERE b.task_id = t.task_id) AS bid_count "
    "FROM tasks t"
)

_MAX_TITLE_LENGTH = 200
_MAX_TEXT_LENGTH = 10000


def fetch_task(conn: sqlite3.Connection, task_id: str) -> Task | None:
    """Load one task (with bid_count) on an open connection."""
    row = conn.execute(_TASK_SELECT_SQL + " WHERE t.task_id = ?", (task_id,)).fetchone()
    if row is None:
        return None
    return Task.from_row(row)


def require_task(conn: sqlite3.Connection, task_id: str) -> Task:
    """Load a task or raise TASK_NOT_FOUND."""
    task = fetch_task(conn, task_id)
    if task is None:
        raise NotFoundError("TASK_NOT_FOUND", "Task not found", details={"task_id": task_id})
    return task


def _require_text(value: object, field_name: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("INVALID_PAYLOAD", f"{field_name} must be a non-empty string")
    if len(value) > max_length:
        raise ValidationError(
            "INVALID_PAYLOAD",
            f"{field_name} must not exceed {max_length} characters",
        )
    return value.strip()


def _require_pages(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("INVALID_PAYLOAD", "pages must be an integer of at least 1")
    return value


def parse_deadline(value: object) -> str:
    """
    Parse an ISO 8601 deadline that must lie in the future.

    Naive timestamps are taken as UTC. Returns the normalised stored form.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(
                "INVALID_DEADLINE", "deadline must be an ISO 8601 timestamp"
            ) from exc
    else:
        raise ValidationError("INVALID_DEADLINE", "deadline must be an ISO 8601 timestamp")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    try:
        moment = moment.astimezone(UTC)
    except OverflowError as exc:
        raise ValidationError(
            "INVALID_DEADLINE", "deadline is outside the supported date range"
        ) from exc

    if moment <= datetime.now(UTC):
        raise ValidationError("INVALID_DEADLINE", "deadline must be in the future")
    return to_iso(moment)


class TaskRegistry:
    """
    Durable record of tasks and their lifecycle state.

    OPEN -> ASSIGNED belongs to the bid resolution engine; this registry owns
    the remaining transitions (start, complete, cancel) and plain edits.
    """

    _PATCHABLE_FIELDS = frozenset({"title", "description", "subject", "pages", "budget", "deadline"})

    def __init__(self, database: Database) -> None:
        self._database = database
        self._logger = get_logger(__name__)

    def create_task(
        self,
        title: object,
        description: object,
        subject: object,
        pages: object,
        budget: object,
        deadline: object,
    ) -> Task:
        """
        Create an OPEN task with no bids.

        Raises:
            ValidationError: empty text fields, pages < 1, budget < 0.01,
                unparseable or past deadline.
        """
        values = {
            "title": _require_text(title, "title", _MAX_TITLE_LENGTH),
            "description": _require_text(description, "description", _MAX_TEXT_LENGTH),
            "subject": _require_text(subject, "subject", _MAX_TITLE_LENGTH),
            "pages": _require_pages(pages),
            "budget": require_min_cents(to_cents(budget, "budget"), "budget"),
            "deadline": parse_deadline(deadline),
        }
        task_id = f"t-{uuid.uuid4()}"
        created_at = now_iso()

        def work(conn: sqlite3.Connection) -> Task:
            conn.execute(
                "INSERT INTO tasks (task_id, title, description, subject, pages, budget, "
                "deadline, status, assigned_writer_id, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)",
                (
                    task_id,
                    values["title"],
                    values["description"],
                    values["subject"],
                    values["pages"],
                    values["budget"],
                    values["deadline"],
                    TaskStatus.OPEN.value,
                    created_at,
                    created_at,
                ),
            )
            return require_task(conn, task_id)

        task = self._database.atomic(work)
        self._logger.info(
            "Task created",
            extra={"task_id": task_id, "budget": task.budget, "deadline": task.deadline},
        )
        return task

    def get_task(self, task_id: str) -> Task:
        """Fetch a task by ID. Raises NotFoundError if absent."""
        return self._database.read(lambda conn: require_task(conn, task_id))

    def list_tasks(self, status: object = None) -> list[Task]:
        """List tasks newest first, optionally filtered by status."""
        if status is None:
            query, params = _TASK_SELECT_SQL, ()
        else:
            parsed = parse_enum(TaskStatus, status, "status")
            query, params = _TASK_SELECT_SQL + " WHERE t.status = ?", (parsed.value,)
        query += " ORDER BY t.created_at DESC, t.rowid DESC"

        rows = self._database.read(lambda conn: conn.execute(query, params).fetchall())
        return [Task.from_row(row) for row in rows]

    def list_available(self) -> list[Task]:
        """OPEN tasks whose deadline is still in the future, newest first."""
        query = (
            _TASK_SELECT_SQL
            + " WHERE t.status = ? AND t.deadline > ? ORDER BY t.created_at DESC, t.rowid DESC"
        )
        params = (TaskStatus.OPEN.value, now_iso())
        rows = self._database.read(lambda conn: conn.execute(query, params).fetchall())
        return [Task.from_row(row) for row in rows]

    def update_task(self, task_id: str, patch: dict[str, Any]) -> Task:
        """
        Edit descriptive fields of a non-terminal task.

        Status and assignment are not patchable; they move only through the
        lifecycle operations.
        """
        if not patch:
            raise ValidationError("INVALID_PAYLOAD", "Patch must contain at least one field")

        unknown = sorted(set(patch) - self._PATCHABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "INVALID_PAYLOAD",
                f"Fields cannot be updated: {', '.join(unknown)}",
                details={"fields": unknown},
            )

        updates: dict[str, object] = {}
        for field_name, value in patch.items():
            if field_name in ("title", "subject"):
                updates[field_name] = _require_text(value, field_name, _MAX_TITLE_LENGTH)
            elif field_name == "description":
                updates[field_name] = _require_text(value, field_name, _MAX_TEXT_LENGTH)
            elif field_name == "pages":
                updates[field_name] = _require_pages(value)
            elif field_name == "budget":
                updates[field_name] = require_min_cents(to_cents(value, "budget"), "budget")
            else:
                updates[field_name] = parse_deadline(value)

        def work(conn: sqlite3.Connection) -> Task:
            task = require_task(conn, task_id)
            if task.status in TERMINAL_TASK_STATUSES:
                raise StateError(
                    "INVALID_STATUS",
                    f"Cannot update task in '{task.status}' status",
                )
            columns = sorted(updates)
            set_clause = ", ".join(f"{column} = ?" for column in columns)
            params: list[object] = [updates[column] for column in columns]
            params.extend([now_iso(), task_id, task.status.value])
            conn.execute(
                "UPDATE tasks SET " + set_clause + ", updated_at = ? "  # nosec B608
                "WHERE task_id = ? AND status = ?",
                params,
            )
            return require_task(conn, task_id)

        task = self._database.atomic(work)
        self._logger.info("Task updated", extra={"task_id": task_id, "fields": sorted(updates)})
        return task

    def delete_task(self, task_id: str) -> None:
        """
        Delete a task that has never been bid on.

        Raises:
            NotFoundError: TASK_NOT_FOUND.
            ConflictError: TASK_HAS_BIDS when any bid references the task.
        """

        def work(conn: sqlite3.Connection) -> None:
            task = require_task(conn, task_id)
            if task.bid_count > 0:
                raise ConflictError(
                    "TASK_HAS_BIDS",
                    "Cannot delete a task that has bids",
                    details={"task_id": task_id, "bid_count": task.bid_count},
                )
            conn.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))

        self._database.atomic(work)
        self._logger.info("Task deleted", extra={"task_id": task_id})

    def start_task(self, task_id: str, writer_id: str) -> Task:
        """Assigned writer begins work: ASSIGNED -> IN_PROGRESS."""

        def work(conn: sqlite3.Connection) -> Task:
            task = require_task(conn, task_id)
            target = transition_task(task.status, TaskStatus.IN_PROGRESS)
            if task.assigned_writer_id != writer_id:
                raise AuthorizationError(
                    "FORBIDDEN",
                    "Only the assigned writer can start this task",
                )
            self._set_status(conn, task, target, task.assigned_writer_id)
            return require_task(conn, task_id)

        task = self._database.atomic(work)
        self._logger.info("Task started", extra={"task_id": task_id, "writer_id": writer_id})
        return task

    def complete_task(self, task_id: str) -> Task:
        """Submission accepted: ASSIGNED or IN_PROGRESS -> COMPLETED."""

        def work(conn: sqlite3.Connection) -> Task:
            task = require_task(conn, task_id)
            target = transition_task(task.status, TaskStatus.COMPLETED)
            self._set_status(conn, task, target, task.assigned_writer_id)
            return require_task(conn, task_id)

        task = self._database.atomic(work)
        self._logger.info(
            "Task completed",
            extra={"task_id": task_id, "writer_id": task.assigned_writer_id},
        )
        return task

    def cancel_task(self, task_id: str) -> Task:
        """
        Cancel a non-terminal task.

        Clears the assignment and rejects any bids still pending, in the
        same unit as the status change.
        """

        def work(conn: sqlite3.Connection) -> Task:
            task = require_task(conn, task_id)
            target = transition_task(task.status, TaskStatus.CANCELLED)
            self._set_status(conn, task, target, None)
            conn.execute(
                "UPDATE bids SET status = ?, resolved_at = ? WHERE task_id = ? AND status = ?",
                (BidStatus.REJECTED.value, now_iso(), task_id, BidStatus.PENDING.value),
            )
            return require_task(conn, task_id)

        task = self._database.atomic(work)
        self._logger.info("Task cancelled", extra={"task_id": task_id})
        return task

    def count_tasks_by_status(self) -> dict[str, int]:
        """Count tasks grouped by status; every status is present, zero if unused."""
        rows = self._database.read(
            lambda conn: conn.execute("SELECT status, COUNT(*) FROM tasks GROUP BY status").fetchall()
        )
        counts = {status.value: 0 for status in TaskStatus}
        for row in rows:
            counts[str(row[0])] = int(row[1])
        return counts

    @staticmethod
    def _set_status(
        conn: sqlite3.Connection,
        task: Task,
        target: TaskStatus,
        assigned_writer_id: str | None,
    ) -> None:
        cursor = conn.execute(
            "UPDATE tasks SET status = ?, assigned_writer_id = ?, updated_at = ? "
            "WHERE task_id = ? AND status = ?",
            (target.value, assigned_writer_id, now_iso(), task.task_id, task.status.value),
        )
        if cursor.rowcount != 1:
            raise StateError(
                "INVALID_STATUS",
                "Task status changed concurrently",
                details={"task_id": task.task_id},
            )
