"""Task endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from writeflow_service.routers.helpers import (
    authenticate,
    get_marketplace,
    parse_json_body,
    require_admin,
    require_writer,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# POST /tasks: create task
# ---------------------------------------------------------------------------


@router.post("/tasks", status_code=201)
async def create_task(request: Request) -> JSONResponse:
    """Post a new writing task. Admin only."""
    actor = authenticate(request)
    require_admin(actor)
    data = parse_json_body(await request.body())

    task = await get_marketplace().create_task(data)
    return JSONResponse(status_code=201, content=task.to_response())


# ---------------------------------------------------------------------------
# GET /tasks, GET /tasks/available (MUST be before GET /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.get("/tasks")
async def list_tasks(request: Request) -> dict[str, Any]:
    """List tasks, optionally filtered by status."""
    authenticate(request)
    status = request.query_params.get("status")

    tasks = await get_marketplace().list_tasks(status)
    return {"tasks": [task.to_response() for task in tasks]}


@router.get("/tasks/available")
async def list_available_tasks(request: Request) -> dict[str, Any]:
    """Open tasks still before their deadline."""
    authenticate(request)

    tasks = await get_marketplace().list_available()
    return {"tasks": [task.to_response() for task in tasks]}


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}")
async def get_task(task_id: str, request: Request) -> dict[str, Any]:
    authenticate(request)
    task = await get_marketplace().get_task(task_id)
    return task.to_response()


@router.patch("/tasks/{task_id}")
async def update_task(task_id: str, request: Request) -> dict[str, Any]:
    """Edit task details. Admin only; status is not editable here."""
    actor = authenticate(request)
    require_admin(actor)
    data = parse_json_body(await request.body())

    task = await get_marketplace().update_task(task_id, data)
    return task.to_response()


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(task_id: str, request: Request) -> Response:
    """Delete a task with no bids. Admin only."""
    actor = authenticate(request)
    require_admin(actor)

    await get_marketplace().delete_task(task_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/start")
async def start_task(task_id: str, request: Request) -> dict[str, Any]:
    """The assigned writer starts work."""
    actor = authenticate(request)
    require_writer(actor)

    task = await get_marketplace().start_task(task_id, actor.user_id)
    return task.to_response()


@router.post("/tasks/{task_id}/complete")
async def complete_task(task_id: str, request: Request) -> dict[str, Any]:
    actor = authenticate(request)
    require_admin(actor)

    task = await get_marketplace().complete_task(task_id)
    return task.to_response()


@router.post("/tasks/{task_id}/cancel")
async def cancel_task(task_id: str, request: Request) -> dict[str, Any]:
    """Cancel a task; pending bids on it are rejected."""
    actor = authenticate(request)
    require_admin(actor)

    task = await get_marketplace().cancel_task(task_id)
    return task.to_response()
