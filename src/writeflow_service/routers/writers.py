"""Writer wallet endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from writeflow_service.core.exceptions import ValidationError
from writeflow_service.routers.helpers import (
    authenticate,
    get_marketplace,
    parse_json_body,
    require_admin,
    require_self_or_admin,
)
from writeflow_service.schemas import ReconciliationResponse, WalletResponse

router = APIRouter()


# === POST /writers: Register Wallet ===


@router.post("/writers", status_code=201)
async def register_writer(request: Request) -> JSONResponse:
    """
    Create a zero-balance wallet.

    Writers register themselves (writer_id defaults to the caller);
    admins must name the writer explicitly.
    """
    actor = authenticate(request)
    data = parse_json_body(await request.body())

    if actor.is_admin and "writer_id" not in data:
        raise ValidationError("INVALID_PAYLOAD", "writer_id is required for admin callers")
    writer_id = data.get("writer_id", actor.user_id)
    if isinstance(writer_id, str):
        require_self_or_admin(actor, writer_id)

    wallet = await get_marketplace().register_writer(writer_id)
    return JSONResponse(status_code=201, content=wallet.to_response())


# === GET /writers/{writer_id}/wallet ===


@router.get("/writers/{writer_id}/wallet", response_model=WalletResponse)
async def get_wallet(writer_id: str, request: Request) -> dict[str, Any]:
    actor = authenticate(request)
    require_self_or_admin(actor, writer_id)

    wallet = await get_marketplace().get_wallet(writer_id)
    return wallet.to_response()


# === GET /writers/{writer_id}/reconciliation (Admin audit) ===


@router.get("/writers/{writer_id}/reconciliation", response_model=ReconciliationResponse)
async def reconcile_wallet(writer_id: str, request: Request) -> dict[str, Any]:
    """Compare the stored balance with the ledger sum."""
    actor = authenticate(request)
    require_admin(actor)

    reconciliation = await get_marketplace().reconcile(writer_id)
    return reconciliation.to_response()
