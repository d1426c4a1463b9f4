"""Shared router helper functions."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from writeflow_service.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ValidationError,
)
from writeflow_service.core.state import get_app_state
from writeflow_service.models import Role

if TYPE_CHECKING:
    from fastapi import Request

    from writeflow_service.services.marketplace import Marketplace
    from writeflow_service.services.token_validator import Actor


def parse_json_body(body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ValidationError on failure."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("INVALID_JSON", "Request body is not valid JSON") from exc

    if not isinstance(data, dict):
        raise ValidationError("INVALID_JSON", "Request body must be a JSON object")

    return data


def extract_bearer_token(authorization: str | None) -> str:
    """Extract the token from an Authorization header."""
    if authorization is None:
        raise AuthenticationError("UNAUTHORIZED", "Missing Authorization header")

    if not authorization.startswith("Bearer "):
        raise AuthenticationError(
            "UNAUTHORIZED",
            "Authorization header must use Bearer scheme",
        )

    token = authorization[len("Bearer ") :].strip()
    if not token:
        raise AuthenticationError("UNAUTHORIZED", "Bearer token must not be empty")

    return token


def authenticate(request: Request) -> Actor:
    """Resolve the calling actor from the request's bearer token."""
    state = get_app_state()
    if state.token_validator is None:
        msg = "Token validator not initialized"
        raise RuntimeError(msg)

    token = extract_bearer_token(request.headers.get("authorization"))
    return state.token_validator.validate(token)


def get_marketplace() -> Marketplace:
    state = get_app_state()
    if state.marketplace is None:
        msg = "Marketplace not initialized"
        raise RuntimeError(msg)
    return state.marketplace


def require_admin(actor: Actor) -> None:
    """Check that the caller is an administrator."""
    if actor.role != Role.ADMIN:
        raise AuthorizationError("FORBIDDEN", "Administrator role required")


def require_writer(actor: Actor) -> None:
    """Check that the caller is a writer."""
    if actor.role != Role.WRITER:
        raise AuthorizationError("FORBIDDEN", "Writer role required")


def require_self_or_admin(actor: Actor, writer_id: str) -> None:
    """Writers may only act on their own wallet; admins on any."""
    if actor.role != Role.ADMIN and actor.user_id != writer_id:
        raise AuthorizationError("FORBIDDEN", "You can only access your own wallet")
