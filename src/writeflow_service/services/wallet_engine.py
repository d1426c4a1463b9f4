"""Wallet transaction engine: writer wallets, ledger rows and reconciliation."""

from __future__ import annotations

import sqlite3
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from writeflow_service.core.exceptions import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from writeflow_service.logging import get_logger
from writeflow_service.models import (
    Reconciliation,
    Transaction,
    TransactionPage,
    TransactionType,
    Wallet,
    parse_enum,
)
from writeflow_service.money import format_cents, require_min_cents, to_cents
from writeflow_service.services.database import now_iso, to_iso

if TYPE_CHECKING:
    from writeflow_service.services.database import Database

_TX_COLUMNS = "tx_id, writer_id, amount, type, description, balance_after, created_at"

_MAX_DESCRIPTION_LENGTH = 500
_MAX_WRITER_ID_LENGTH = 128


def _require_wallet(conn: sqlite3.Connection, writer_id: str) -> Wallet:
    row = conn.execute(
        "SELECT writer_id, balance, created_at FROM writers WHERE writer_id = ?",
        (writer_id,),
    ).fetchone()
    if row is None:
        raise NotFoundError(
            "WRITER_NOT_FOUND",
            "Writer not found",
            details={"writer_id": writer_id},
        )
    return Wallet.from_row(row)


def parse_timestamp(value: object, field_name: str) -> str:
    """Parse an ISO 8601 timestamp or date into the stored UTC form. Naive values are UTC."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(
                "INVALID_PAYLOAD",
                f"{field_name} must be an ISO 8601 timestamp",
            ) from exc
    else:
        raise ValidationError("INVALID_PAYLOAD", f"{field_name} must be an ISO 8601 timestamp")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    try:
        moment = moment.astimezone(UTC)
    except OverflowError as exc:
        raise ValidationError(
            "INVALID_PAYLOAD",
            f"{field_name} is outside the supported date range",
        ) from exc
    return to_iso(moment)


class WalletEngine:
    """
    Applies balance-affecting transactions to writer wallets.

    The balance read, the new balance and the appended ledger row happen in
    one unit of work, so concurrent transactions against the same writer
    serialise and no update is lost. The transactions table is append-only.
    """

    def __init__(self, database: Database, max_page_size: int = 100) -> None:
        self._database = database
        self._max_page_size = max_page_size
        self._logger = get_logger(__name__)

    def register_writer(self, writer_id: object) -> Wallet:
        """
        Create a zero-balance wallet for a writer account.

        Raises:
            ValidationError: empty or oversized writer_id.
            ConflictError: WRITER_EXISTS if the wallet already exists.
        """
        if not isinstance(writer_id, str) or not writer_id.strip():
            raise ValidationError("INVALID_PAYLOAD", "writer_id must be a non-empty string")
        if len(writer_id) > _MAX_WRITER_ID_LENGTH:
            raise ValidationError(
                "INVALID_PAYLOAD",
                f"writer_id must not exceed {_MAX_WRITER_ID_LENGTH} characters",
            )
        created_at = now_iso()

        def work(conn: sqlite3.Connection) -> Wallet:
            try:
                conn.execute(
                    "INSERT INTO writers (writer_id, balance, created_at) VALUES (?, 0, ?)",
                    (writer_id, created_at),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(
                    "WRITER_EXISTS",
                    "Wallet already exists for this writer",
                    details={"writer_id": writer_id},
                ) from exc
            return _require_wallet(conn, writer_id)

        wallet = self._database.atomic(work)
        self._logger.info("Writer registered", extra={"writer_id": writer_id})
        return wallet

    def get_wallet(self, writer_id: str) -> Wallet:
        """Current balance for a writer. Raises WRITER_NOT_FOUND if absent."""
        return self._database.read(lambda conn: _require_wallet(conn, writer_id))

    def apply_transaction(
        self,
        writer_id: str,
        amount: object,
        transaction_type: object,
        description: object,
    ) -> Transaction:
        """
        Apply one balance change and append its ledger row.

        The amount is supplied positive; EARNING and BONUS credit it,
        WITHDRAWAL and PENALTY debit it.

        Raises:
            ValidationError: amount below 0.01, unknown type, empty description.
            NotFoundError: WRITER_NOT_FOUND.
            InsufficientFundsError: the debit would take the balance below zero.
        """
        cents = require_min_cents(to_cents(amount, "amount"), "amount")
        tx_type = parse_enum(TransactionType, transaction_type, "type")
        if not isinstance(description, str) or not description.strip():
            raise ValidationError("INVALID_PAYLOAD", "description must be a non-empty string")
        if len(description) > _MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                "INVALID_PAYLOAD",
                f"description must not exceed {_MAX_DESCRIPTION_LENGTH} characters",
            )
        signed_amount = tx_type.sign * cents
        tx_id = f"tx-{uuid.uuid4()}"

        def work(conn: sqlite3.Connection) -> Transaction:
            wallet = _require_wallet(conn, writer_id)
            new_balance = wallet.balance + signed_amount
            if new_balance < 0:
                raise InsufficientFundsError(
                    "INSUFFICIENT_FUNDS",
                    "Insufficient funds for this transaction",
                    details={
                        "balance": format_cents(wallet.balance),
                        "requested": format_cents(cents),
                    },
                )
            cursor = conn.execute(
                "UPDATE writers SET balance = ? WHERE writer_id = ? AND balance = ?",
                (new_balance, writer_id, wallet.balance),
            )
            if cursor.rowcount != 1:
                raise ConflictError("BALANCE_CHANGED", "Wallet balance changed concurrently")
            conn.execute(
                f"INSERT INTO transactions ({_TX_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    tx_id,
                    writer_id,
                    signed_amount,
                    tx_type.value,
                    description.strip(),
                    new_balance,
                    now_iso(),
                ),
            )
            row = conn.execute(
                f"SELECT {_TX_COLUMNS} FROM transactions WHERE tx_id = ?", (tx_id,)
            ).fetchone()
            return Transaction.from_row(row)

        transaction = self._database.atomic(work)
        self._logger.info(
            "Transaction applied",
            extra={
                "tx_id": tx_id,
                "writer_id": writer_id,
                "type": tx_type.value,
                "amount": signed_amount,
                "balance_after": transaction.balance_after,
            },
        )
        return transaction

    def list_transactions(
        self,
        writer_id: str | None = None,
        transaction_type: object = None,
        start: object = None,
        end: object = None,
        page: int = 1,
        limit: int = 10,
    ) -> TransactionPage:
        """
        Page through ledger rows newest first.

        start and end bound created_at inclusively; each filter is optional.
        """
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError("INVALID_PAYLOAD", "page must be an integer of at least 1")
        if (
            isinstance(limit, bool)
            or not isinstance(limit, int)
            or not 1 <= limit <= self._max_page_size
        ):
            raise ValidationError(
                "INVALID_PAYLOAD",
                f"limit must be between 1 and {self._max_page_size}",
            )

        clauses: list[str] = []
        params: list[object] = []
        if writer_id is not None:
            clauses.append("writer_id = ?")
            params.append(writer_id)
        if transaction_type is not None:
            clauses.append("type = ?")
            params.append(parse_enum(TransactionType, transaction_type, "type").value)
        start_at = parse_timestamp(start, "start") if start is not None else None
        end_at = parse_timestamp(end, "end") if end is not None else None
        if start_at is not None and end_at is not None and start_at > end_at:
            raise ValidationError("INVALID_PAYLOAD", "start must not be after end")
        if start_at is not None:
            clauses.append("created_at >= ?")
            params.append(start_at)
        if end_at is not None:
            clauses.append("created_at <= ?")
            params.append(end_at)
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        offset = (page - 1) * limit

        def work(conn: sqlite3.Connection) -> tuple[int, list[sqlite3.Row]]:
            total = conn.execute(
                "SELECT COUNT(*) FROM transactions" + where,  # nosec B608
                params,
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT {_TX_COLUMNS} FROM transactions{where} "  # nosec B608
                "ORDER BY created_at DESC, seq DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
            return int(total), rows

        total, rows = self._database.read(work)
        return TransactionPage(
            items=tuple(Transaction.from_row(row) for row in rows),
            total=total,
            page=page,
            limit=limit,
        )

    def reconcile(self, writer_id: str) -> Reconciliation:
        """Compare the stored balance with the sum of the writer's ledger rows."""

        def work(conn: sqlite3.Connection) -> Reconciliation:
            wallet = _require_wallet(conn, writer_id)
            row = conn.execute(
                "SELECT COALESCE(SUM(amount), 0), COUNT(*) FROM transactions WHERE writer_id = ?",
                (writer_id,),
            ).fetchone()
            return Reconciliation(
                writer_id=writer_id,
                balance=wallet.balance,
                ledger_total=int(row[0]),
                transaction_count=int(row[1]),
            )

        reconciliation = self._database.read(work)
        if not reconciliation.consistent:
            self._logger.error(
                "Wallet out of balance with ledger",
                extra={
                    "writer_id": writer_id,
                    "balance": reconciliation.balance,
                    "ledger_total": reconciliation.ledger_total,
                },
            )
        return reconciliation
