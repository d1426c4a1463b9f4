"""Wallet transaction endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from writeflow_service.config import get_settings
from writeflow_service.core.exceptions import ValidationError
from writeflow_service.routers.helpers import (
    authenticate,
    get_marketplace,
    parse_json_body,
    require_admin,
)
from writeflow_service.schemas import TransactionListResponse

router = APIRouter()


def _parse_int_param(raw: str | None, name: str, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError("INVALID_PAYLOAD", f"{name} must be an integer") from exc


# === POST /transactions: Apply Transaction (Admin) ===


@router.post("/transactions", status_code=201)
async def apply_transaction(request: Request) -> JSONResponse:
    """Credit or debit a writer's wallet and append a ledger row."""
    actor = authenticate(request)
    require_admin(actor)
    data = parse_json_body(await request.body())

    writer_id = data.get("writer_id")
    if not isinstance(writer_id, str) or not writer_id:
        raise ValidationError("INVALID_PAYLOAD", "writer_id must be a non-empty string")

    transaction = await get_marketplace().apply_transaction(
        writer_id,
        data.get("amount"),
        data.get("type"),
        data.get("description"),
    )
    return JSONResponse(status_code=201, content=transaction.to_response())


# === GET /transactions: Paginated Ledger ===


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(request: Request) -> dict[str, Any]:
    """
    List ledger rows newest first.

    Non-admin callers only ever see their own transactions, whatever
    writer_id they pass.
    """
    actor = authenticate(request)
    params = request.query_params
    pagination = get_settings().pagination

    writer_id = params.get("writer_id") if actor.is_admin else actor.user_id
    page = _parse_int_param(params.get("page"), "page", 1)
    limit = _parse_int_param(params.get("limit"), "limit", pagination.default_limit)

    result = await get_marketplace().list_transactions(
        writer_id=writer_id,
        transaction_type=params.get("type"),
        start=params.get("start"),
        end=params.get("end"),
        page=page,
        limit=limit,
    )
    return result.to_response()
