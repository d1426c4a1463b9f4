"""Pydantic response models for the read endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """GET /health: liveness plus a task count per status."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    total_tasks: int
    tasks_by_status: dict[str, int]


class WalletResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    writer_id: str
    balance: str
    created_at: str


class ReconciliationResponse(BaseModel):
    """Stored balance next to the ledger sum; consistent is false on drift."""

    model_config = ConfigDict(extra="forbid")
    writer_id: str
    balance: str
    ledger_total: str
    transaction_count: int
    consistent: bool


class TransactionResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    tx_id: str
    writer_id: str
    amount: str
    type: Literal["earning", "withdrawal", "bonus", "penalty"]
    description: str
    balance_after: str
    created_at: str


class PageMeta(BaseModel):
    model_config = ConfigDict(extra="forbid")
    total: int
    page: int
    limit: int
    total_pages: int


class TransactionListResponse(BaseModel):
    """GET /transactions: one page of ledger rows, newest first."""

    model_config = ConfigDict(extra="forbid")
    data: list[TransactionResponse]
    meta: PageMeta
