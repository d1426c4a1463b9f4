"""Shared test helpers for bearer tokens and fixture data."""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import yaml
from joserfc import jwt
from joserfc.jwk import OctKey

TEST_JWT_SECRET = "test-secret-that-is-long-enough-for-hs256-signing"


def make_token(
    user_id: str,
    role: str,
    secret: str = TEST_JWT_SECRET,
    expires_in: int | None = 3600,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Sign an HS256 bearer token the way the auth service issues them."""
    claims: dict[str, Any] = {"sub": user_id, "role": role}
    if expires_in is not None:
        claims["exp"] = int(time.time()) + expires_in
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode({"alg": "HS256"}, claims, OctKey.import_key(secret))


def auth_header(token: str) -> dict[str, str]:
    """Authorization header for a bearer token."""
    return {"Authorization": f"Bearer {token}"}


def future_deadline(days: int = 7) -> str:
    """ISO 8601 deadline the given number of days from now."""
    return (datetime.now(UTC) + timedelta(days=days)).isoformat()


def past_deadline(days: int = 1) -> str:
    return (datetime.now(UTC) - timedelta(days=days)).isoformat()


def config_values(tmp_path: Path) -> dict[str, Any]:
    """A complete settings mapping pointing at files under tmp_path."""
    return {
        "service": {"name": "writeflow", "version": "0.1.0"},
        "server": {"host": "127.0.0.1", "port": 8010, "log_level": "info"},
        "logging": {"level": "WARNING", "directory": str(tmp_path / "logs")},
        "database": {"path": str(tmp_path / "writeflow.db"), "busy_timeout_ms": 5000},
        "auth": {"jwt_secret": TEST_JWT_SECRET, "algorithm": "HS256"},
        "notifications": {
            "enabled": True,
            "base_url": "http://notifications.test",
            "path": "/notifications",
            "timeout_seconds": 5,
            "admin_recipients": ["admin-1"],
        },
        "request": {"max_body_size": 4096},
        "pagination": {"default_limit": 10, "max_limit": 50},
    }


def write_config(tmp_path: Path, values: dict[str, Any] | None = None) -> Path:
    """Dump a settings mapping to tmp_path/config.yaml and return its path."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(values if values is not None else config_values(tmp_path)))
    return config_path


def task_payload(**overrides: Any) -> dict[str, Any]:
    """A valid POST /tasks body."""
    payload: dict[str, Any] = {
        "title": "Essay on tidal energy",
        "description": "Argumentative essay, APA style, five sources minimum.",
        "subject": "Environmental science",
        "pages": 6,
        "budget": "200.00",
        "deadline": future_deadline(),
    }
    payload.update(overrides)
    return payload


async def api_create_task(client: Any, admin_token: str, **overrides: Any) -> dict[str, Any]:
    """Create a task through the API and return its JSON body."""
    response = await client.post("/tasks", json=task_payload(**overrides), headers=auth_header(admin_token))
    assert response.status_code == 201, response.text
    result: dict[str, Any] = response.json()
    return result


async def api_register_writer(client: Any, writer_token: str) -> dict[str, Any]:
    """Register the calling writer's wallet."""
    response = await client.post("/writers", json={}, headers=auth_header(writer_token))
    assert response.status_code == 201, response.text
    result: dict[str, Any] = response.json()
    return result


async def api_place_bid(
    client: Any,
    writer_token: str,
    task_id: str,
    amount: str = "150.00",
    proposal: str = "Ten years writing on renewable energy.",
) -> dict[str, Any]:
    """Place a bid through the API and return its JSON body."""
    response = await client.post(
        "/bids",
        json={"task_id": task_id, "amount": amount, "proposal": proposal},
        headers=auth_header(writer_token),
    )
    assert response.status_code == 201, response.text
    result: dict[str, Any] = response.json()
    return result
