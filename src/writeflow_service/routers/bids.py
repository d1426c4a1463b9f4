"""Bid placement, listing and resolution endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from writeflow_service.core.exceptions import ValidationError
from writeflow_service.routers.helpers import (
    authenticate,
    get_marketplace,
    parse_json_body,
    require_admin,
    require_writer,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /bids: place bid
# ---------------------------------------------------------------------------


@router.post("/bids", status_code=201)
async def place_bid(request: Request) -> JSONResponse:
    """Place a bid on an open task as the calling writer."""
    actor = authenticate(request)
    require_writer(actor)
    data = parse_json_body(await request.body())

    task_id = data.get("task_id")
    if not isinstance(task_id, str) or not task_id:
        raise ValidationError("INVALID_PAYLOAD", "task_id must be a non-empty string")

    bid = await get_marketplace().place_bid(
        task_id,
        actor.user_id,
        data.get("amount"),
        data.get("proposal"),
    )
    return JSONResponse(status_code=201, content=bid.to_response())


# ---------------------------------------------------------------------------
# Listings (GET /bids/mine MUST be before /bids/{bid_id} routes)
# ---------------------------------------------------------------------------


@router.get("/bids/mine")
async def list_my_bids(request: Request) -> dict[str, Any]:
    """The calling writer's bids, newest first."""
    actor = authenticate(request)
    require_writer(actor)

    bids = await get_marketplace().get_bids_for_writer(actor.user_id)
    return {"bids": [bid.to_response() for bid in bids]}


@router.get("/tasks/{task_id}/bids")
async def list_task_bids(task_id: str, request: Request) -> dict[str, Any]:
    """All bids on a task. Admin only."""
    actor = authenticate(request)
    require_admin(actor)

    bids = await get_marketplace().get_bids_for_task(task_id)
    return {"task_id": task_id, "bids": [bid.to_response() for bid in bids]}


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@router.post("/bids/{bid_id}/approve")
async def approve_bid(bid_id: str, request: Request) -> dict[str, Any]:
    """Approve a bid: assigns the task and rejects the other pending bids."""
    actor = authenticate(request)
    require_admin(actor)

    resolution = await get_marketplace().approve_bid(bid_id)
    return {
        "bid": resolution.approved.to_response(),
        "task": resolution.task.to_response(),
        "rejected_bids": [bid.to_response() for bid in resolution.rejected],
    }


@router.post("/bids/{bid_id}/reject")
async def reject_bid(bid_id: str, request: Request) -> dict[str, Any]:
    actor = authenticate(request)
    require_admin(actor)

    bid = await get_marketplace().reject_bid(bid_id)
    return bid.to_response()


@router.delete("/bids/{bid_id}", status_code=204)
async def withdraw_bid(bid_id: str, request: Request) -> Response:
    """Withdraw the caller's own pending bid."""
    actor = authenticate(request)
    require_writer(actor)

    await get_marketplace().withdraw_bid(bid_id, actor.user_id)
    return Response(status_code=204)
