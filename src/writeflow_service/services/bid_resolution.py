"""Bid resolution engine: approve one bid per task, or reject individual bids."""

from __future__ import annotations

from typing import TYPE_CHECKING

from writeflow_service.core.exceptions import StateError
from writeflow_service.logging import get_logger
from writeflow_service.models import (
    Bid,
    BidResolution,
    BidStatus,
    TaskStatus,
    transition_bid,
    transition_task,
)
from writeflow_service.services.bid_registry import BID_COLUMNS, require_bid
from writeflow_service.services.database import now_iso
from writeflow_service.services.task_registry import require_task

if TYPE_CHECKING:
    import sqlite3

    from writeflow_service.services.database import Database


class BidResolutionEngine:
    """
    Owns the OPEN -> ASSIGNED transition.

    An approval is one unit of work: the winning bid, the task assignment
    and the rejection of every sibling bid commit together or not at all.
    Competing approvals for the same task serialise on the write lock taken
    by BEGIN IMMEDIATE; the loser re-reads the task as ASSIGNED and fails.
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._logger = get_logger(__name__)

    def approve_bid(self, bid_id: str) -> BidResolution:
        """
        Approve a bid, assign its writer and reject all other pending bids.

        Raises:
            NotFoundError: BID_NOT_FOUND.
            StateError: INVALID_STATUS if the task is not OPEN (including a
                second approval on an already-assigned task) or the bid is
                not PENDING.
        """

        def work(conn: sqlite3.Connection) -> BidResolution:
            bid = require_bid(conn, bid_id)
            task = require_task(conn, bid.task_id)
            task_target = transition_task(task.status, TaskStatus.ASSIGNED)
            bid_target = transition_bid(bid.status, BidStatus.APPROVED)
            resolved_at = now_iso()

            siblings = [
                Bid.from_row(row)
                for row in conn.execute(
                    f"SELECT {BID_COLUMNS} FROM bids "
                    "WHERE task_id = ? AND status = ? AND bid_id <> ? "
                    "ORDER BY created_at, rowid",
                    (task.task_id, BidStatus.PENDING.value, bid_id),
                ).fetchall()
            ]

            cursor = conn.execute(
                "UPDATE bids SET status = ?, resolved_at = ? WHERE bid_id = ? AND status = ?",
                (bid_target.value, resolved_at, bid_id, BidStatus.PENDING.value),
            )
            if cursor.rowcount != 1:
                raise StateError("INVALID_STATUS", "Bid status changed concurrently")

            cursor = conn.execute(
                "UPDATE tasks SET status = ?, assigned_writer_id = ?, updated_at = ? "
                "WHERE task_id = ? AND status = ?",
                (
                    task_target.value,
                    bid.writer_id,
                    resolved_at,
                    task.task_id,
                    TaskStatus.OPEN.value,
                ),
            )
            if cursor.rowcount != 1:
                raise StateError("INVALID_STATUS", "Task status changed concurrently")

            conn.execute(
                "UPDATE bids SET status = ?, resolved_at = ? "
                "WHERE task_id = ? AND status = ? AND bid_id <> ?",
                (
                    BidStatus.REJECTED.value,
                    resolved_at,
                    task.task_id,
                    BidStatus.PENDING.value,
                    bid_id,
                ),
            )

            return BidResolution(
                approved=require_bid(conn, bid_id),
                task=require_task(conn, task.task_id),
                rejected=tuple(require_bid(conn, sibling.bid_id) for sibling in siblings),
            )

        resolution = self._database.atomic(work)
        self._logger.info(
            "Bid approved",
            extra={
                "bid_id": bid_id,
                "task_id": resolution.task.task_id,
                "writer_id": resolution.approved.writer_id,
                "rejected_bids": len(resolution.rejected),
            },
        )
        return resolution

    def reject_bid(self, bid_id: str) -> Bid:
        """
        Reject a single pending bid. The task is left untouched.

        Raises:
            NotFoundError: BID_NOT_FOUND.
            StateError: INVALID_STATUS unless the bid is PENDING.
        """

        def work(conn: sqlite3.Connection) -> Bid:
            bid = require_bid(conn, bid_id)
            target = transition_bid(bid.status, BidStatus.REJECTED)
            cursor = conn.execute(
                "UPDATE bids SET status = ?, resolved_at = ? WHERE bid_id = ? AND status = ?",
                (target.value, now_iso(), bid_id, BidStatus.PENDING.value),
            )
            if cursor.rowcount != 1:
                raise StateError("INVALID_STATUS", "Bid status changed concurrently")
            return require_bid(conn, bid_id)

        bid = self._database.atomic(work)
        self._logger.info(
            "Bid rejected",
            extra={"bid_id": bid_id, "task_id": bid.task_id, "writer_id": bid.writer_id},
        )
        return bid
