"""Bid registry: placement, listing and withdrawal of bids."""

from __future__ import annotations

import sqlite3
import uuid
from typing import TYPE_CHECKING

from writeflow_service.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from writeflow_service.logging import get_logger
from writeflow_service.models import Bid, BidStatus, TaskStatus
from writeflow_service.money import require_min_cents, to_cents
from writeflow_service.services.database import now_iso
from writeflow_service.services.task_registry import require_task

if TYPE_CHECKING:
    from writeflow_service.services.database import Database

BID_COLUMNS = "bid_id, task_id, writer_id, amount, proposal, status, created_at, resolved_at"

_MAX_PROPOSAL_LENGTH = 10000


def fetch_bid(conn: sqlite3.Connection, bid_id: str) -> Bid | None:
    row = conn.execute(f"SELECT {BID_COLUMNS} FROM bids WHERE bid_id = ?", (bid_id,)).fetchone()
    if row is None:
        return None
    return Bid.from_row(row)


def require_bid(conn: sqlite3.Connection, bid_id: str) -> Bid:
    """Load a bid or raise BID_NOT_FOUND."""
    bid = fetch_bid(conn, bid_id)
    if bid is None:
        raise NotFoundError("BID_NOT_FOUND", "Bid not found", details={"bid_id": bid_id})
    return bid


def require_writer(conn: sqlite3.Connection, writer_id: str) -> None:
    """Raise WRITER_NOT_FOUND unless the writer has a wallet."""
    row = conn.execute("SELECT 1 FROM writers WHERE writer_id = ?", (writer_id,)).fetchone()
    if row is None:
        raise NotFoundError(
            "WRITER_NOT_FOUND",
            "Writer not found",
            details={"writer_id": writer_id},
        )


class BidRegistry:
    """Durable record of bids; the UNIQUE(task_id, writer_id) constraint is the duplicate check."""

    def __init__(self, database: Database) -> None:
        self._database = database
        self._logger = get_logger(__name__)

    def place_bid(self, task_id: str, writer_id: str, amount: object, proposal: object) -> Bid:
        """
        Place a PENDING bid on an OPEN task.

        Raises:
            ValidationError: amount below 0.01 or empty proposal.
            NotFoundError: TASK_NOT_FOUND or WRITER_NOT_FOUND.
            StateError: INVALID_STATUS if the task is not OPEN.
            ConflictError: BID_ALREADY_EXISTS for a second bid by the same writer.
        """
        cents = require_min_cents(to_cents(amount, "amount"), "amount")
        if not isinstance(proposal, str) or not proposal.strip():
            raise ValidationError("INVALID_PAYLOAD", "proposal must be a non-empty string")
        if len(proposal) > _MAX_PROPOSAL_LENGTH:
            raise ValidationError(
                "INVALID_PAYLOAD",
                f"proposal must not exceed {_MAX_PROPOSAL_LENGTH} characters",
            )
        bid_id = f"bid-{uuid.uuid4()}"

        def work(conn: sqlite3.Connection) -> Bid:
            task = require_task(conn, task_id)
            require_writer(conn, writer_id)
            if task.status != TaskStatus.OPEN:
                raise StateError(
                    "INVALID_STATUS",
                    f"Task is not accepting bids (status: {task.status})",
                    details={"task_id": task_id, "status": str(task.status)},
                )
            try:
                conn.execute(
                    f"INSERT INTO bids ({BID_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, NULL)",
                    (
                        bid_id,
                        task_id,
                        writer_id,
                        cents,
                        proposal.strip(),
                        BidStatus.PENDING.value,
                        now_iso(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if "UNIQUE" in str(exc):
                    raise ConflictError(
                        "BID_ALREADY_EXISTS",
                        "Writer has already bid on this task",
                        details={"task_id": task_id, "writer_id": writer_id},
                    ) from exc
                raise
            return require_bid(conn, bid_id)

        bid = self._database.atomic(work)
        self._logger.info(
            "Bid placed",
            extra={"bid_id": bid_id, "task_id": task_id, "writer_id": writer_id, "amount": cents},
        )
        return bid

    def get_bid(self, bid_id: str) -> Bid:
        return self._database.read(lambda conn: require_bid(conn, bid_id))

    def get_bids_for_task(self, task_id: str) -> list[Bid]:
        """Bids on one task, newest first. Raises TASK_NOT_FOUND for an unknown task."""

        def work(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            require_task(conn, task_id)
            return conn.execute(
                f"SELECT {BID_COLUMNS} FROM bids WHERE task_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (task_id,),
            ).fetchall()

        return [Bid.from_row(row) for row in self._database.read(work)]

    def get_bids_for_writer(self, writer_id: str) -> list[Bid]:
        """Bids placed by one writer, newest first."""
        rows = self._database.read(
            lambda conn: conn.execute(
                f"SELECT {BID_COLUMNS} FROM bids WHERE writer_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (writer_id,),
            ).fetchall()
        )
        return [Bid.from_row(row) for row in rows]

    def withdraw_bid(self, bid_id: str, requesting_writer_id: str) -> None:
        """
        Delete a PENDING bid on behalf of its owner.

        Raises:
            NotFoundError: BID_NOT_FOUND.
            AuthorizationError: FORBIDDEN if the caller did not place the bid.
            StateError: INVALID_STATUS once the bid is resolved.
        """

        def work(conn: sqlite3.Connection) -> None:
            bid = require_bid(conn, bid_id)
            if bid.writer_id != requesting_writer_id:
                raise AuthorizationError("FORBIDDEN", "Only the bid owner can withdraw it")
            if bid.status != BidStatus.PENDING:
                raise StateError(
                    "INVALID_STATUS",
                    f"Cannot withdraw a bid in '{bid.status}' status",
                    details={"bid_id": bid_id, "status": str(bid.status)},
                )
            cursor = conn.execute(
                "DELETE FROM bids WHERE bid_id = ? AND status = ?",
                (bid_id, BidStatus.PENDING.value),
            )
            if cursor.rowcount != 1:
                raise StateError("INVALID_STATUS", "Bid status changed concurrently")

        self._database.atomic(work)
        self._logger.info(
            "Bid withdrawn",
            extra={"bid_id": bid_id, "writer_id": requesting_writer_id},
        )
