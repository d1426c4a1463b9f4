"""Domain records and lifecycle state machines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeVar

from writeflow_service.core.exceptions import StateError, ValidationError
from writeflow_service.money import format_cents

if TYPE_CHECKING:
    import sqlite3


class TaskStatus(StrEnum):
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BidStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransactionType(StrEnum):
    EARNING = "earning"
    WITHDRAWAL = "withdrawal"
    BONUS = "bonus"
    PENALTY = "penalty"

    @property
    def sign(self) -> int:
        """+1 for credits, -1 for debits."""
        if self in (TransactionType.EARNING, TransactionType.BONUS):
            return 1
        return -1


class Role(StrEnum):
    ADMIN = "admin"
    WRITER = "writer"


# Statuses in which a task must carry an assigned writer (and no others may).
WRITER_BOUND_STATUSES = frozenset(
    {TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}
)

TERMINAL_TASK_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})

_TASK_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.OPEN: frozenset({TaskStatus.ASSIGNED, TaskStatus.CANCELLED}),
    TaskStatus.ASSIGNED: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED}
    ),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}

_BID_TRANSITIONS: dict[BidStatus, frozenset[BidStatus]] = {
    BidStatus.PENDING: frozenset({BidStatus.APPROVED, BidStatus.REJECTED}),
    BidStatus.APPROVED: frozenset(),
    BidStatus.REJECTED: frozenset(),
}


def transition_task(current: TaskStatus, target: TaskStatus) -> TaskStatus:
    """
    Validate a task state change and return the target status.

    Raises:
        StateError: INVALID_STATUS if target is not reachable from current.
    """
    if target not in _TASK_TRANSITIONS[current]:
        raise StateError(
            "INVALID_STATUS",
            f"Cannot move task from '{current}' to '{target}'",
            details={"current_status": str(current), "target_status": str(target)},
        )
    return target


def transition_bid(current: BidStatus, target: BidStatus) -> BidStatus:
    """
    Validate a bid state change and return the target status.

    Raises:
        StateError: INVALID_STATUS if the bid is already resolved.
    """
    if target not in _BID_TRANSITIONS[current]:
        raise StateError(
            "INVALID_STATUS",
            f"Cannot move bid from '{current}' to '{target}'",
            details={"current_status": str(current), "target_status": str(target)},
        )
    return target


_E = TypeVar("_E", bound=StrEnum)


def parse_enum(enum_type: type[_E], value: object, field_name: str) -> _E:
    """Parse a case-insensitive enum value from request input."""
    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        try:
            return enum_type(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in enum_type)
    raise ValidationError(
        "INVALID_PAYLOAD",
        f"{field_name} must be one of: {allowed}",
    )


@dataclass(frozen=True)
class Task:
    task_id: str
    title: str
    description: str
    subject: str
    pages: int
    budget: int
    deadline: str
    status: TaskStatus
    assigned_writer_id: str | None
    created_at: str
    updated_at: str
    bid_count: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Task:
        keys = row.keys()
        return cls(
            task_id=row["task_id"],
            title=row["title"],
            description=row["description"],
            subject=row["subject"],
            pages=row["pages"],
            budget=row["budget"],
            deadline=row["deadline"],
            status=TaskStatus(row["status"]),
            assigned_writer_id=row["assigned_writer_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            bid_count=row["bid_count"] if "bid_count" in keys else 0,
        )

    def to_response(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "description": self.description,
            "subject": self.subject,
            "pages": self.pages,
            "budget": format_cents(self.budget),
            "deadline": self.deadline,
            "status": str(self.status),
            "assigned_writer_id": self.assigned_writer_id,
            "bid_count": self.bid_count,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class Bid:
    bid_id: str
    task_id: str
    writer_id: str
    amount: int
    proposal: str
    status: BidStatus
    created_at: str
    resolved_at: str | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Bid:
        return cls(
            bid_id=row["bid_id"],
            task_id=row["task_id"],
            writer_id=row["writer_id"],
            amount=row["amount"],
            proposal=row["proposal"],
            status=BidStatus(row["status"]),
            created_at=row["created_at"],
            resolved_at=row["resolved_at"],
        )

    def to_response(self) -> dict[str, Any]:
        return {
            "bid_id": self.bid_id,
            "task_id": self.task_id,
            "writer_id": self.writer_id,
            "amount": format_cents(self.amount),
            "proposal": self.proposal,
            "status": str(self.status),
            "created_at": self.created_at,
            "resolved_at": self.resolved_at,
        }


@dataclass(frozen=True)
class Wallet:
    writer_id: str
    balance: int
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Wallet:
        return cls(writer_id=row["writer_id"], balance=row["balance"], created_at=row["created_at"])

    def to_response(self) -> dict[str, Any]:
        return {
            "writer_id": self.writer_id,
            "balance": format_cents(self.balance),
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Transaction:
    tx_id: str
    writer_id: str
    amount: int
    type: TransactionType
    description: str
    balance_after: int
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Transaction:
        return cls(
            tx_id=row["tx_id"],
            writer_id=row["writer_id"],
            amount=row["amount"],
            type=TransactionType(row["type"]),
            description=row["description"],
            balance_after=row["balance_after"],
            created_at=row["created_at"],
        )

    def to_response(self) -> dict[str, Any]:
        return {
            "tx_id": self.tx_id,
            "writer_id": self.writer_id,
            "amount": format_cents(self.amount),
            "type": str(self.type),
            "description": self.description,
            "balance_after": format_cents(self.balance_after),
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class BidResolution:
    """Outcome of an approval: the winning bid, the assigned task, auto-rejected siblings."""

    approved: Bid
    task: Task
    rejected: tuple[Bid, ...]


@dataclass(frozen=True)
class TransactionPage:
    items: tuple[Transaction, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit

    def to_response(self) -> dict[str, Any]:
        return {
            "data": [item.to_response() for item in self.items],
            "meta": {
                "total": self.total,
                "page": self.page,
                "limit": self.limit,
                "total_pages": self.total_pages,
            },
        }


@dataclass(frozen=True)
class Reconciliation:
    """Stored balance against the sum of the writer's ledger rows."""

    writer_id: str
    balance: int
    ledger_total: int
    transaction_count: int

    @property
    def consistent(self) -> bool:
        return self.balance == self.ledger_total

    def to_response(self) -> dict[str, Any]:
        return {
            "writer_id": self.writer_id,
            "balance": format_cents(self.balance),
            "ledger_total": format_cents(self.ledger_total),
            "transaction_count": self.transaction_count,
            "consistent": self.consistent,
        }
