"""Router test fixtures: a live app on a temp database with a mocked notification client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from tests.helpers import make_token, write_config
from writeflow_service.app import create_app
from writeflow_service.config import clear_settings_cache
from writeflow_service.core.lifespan import lifespan
from writeflow_service.core.state import get_app_state, reset_app_state

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

# ---------------------------------------------------------------------------
# Fixed user IDs
# ---------------------------------------------------------------------------
ADMIN_ID = "admin-1"
ALICE_ID = "w-alice"
BOB_ID = "w-bob"
CAROL_ID = "w-carol"


# ---------------------------------------------------------------------------
# App + client fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
async def app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[Any]:
    """Create a test app with a temp database and a mocked notification client."""
    monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path)))
    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        state = get_app_state()
        state.notification_client = AsyncMock()
        yield test_app

    reset_app_state()
    clear_settings_cache()


@pytest.fixture
async def client(app: Any) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def notifications(_app: Any) -> AsyncMock:
    """The mocked notification client installed on the running app."""
    mock_client: AsyncMock = get_app_state().notification_client  # type: ignore[assignment]
    return mock_client


# ---------------------------------------------------------------------------
# Bearer tokens
# ---------------------------------------------------------------------------
@pytest.fixture
def admin_token() -> str:
    return make_token(ADMIN_ID, "ADMIN")


@pytest.fixture
def alice_token() -> str:
    return make_token(ALICE_ID, "WRITER")


@pytest.fixture
def bob_token() -> str:
    return make_token(BOB_ID, "WRITER")


@pytest.fixture
def carol_token() -> str:
    return make_token(CAROL_ID, "WRITER")


async def _sent_events(mock_client: AsyncMock) -> list[tuple[str, str]]:
    await get_app_state().notifier.drain()  # type: ignore[union-attr]
    return [(call.args[0], call.args[1]) for call in mock_client.send.await_args_list]


@pytest.fixture
def sent_events(notifications: AsyncMock) -> Any:
    """Awaitable that drains pending deliveries and returns (event, recipient) pairs."""

    async def collect() -> list[tuple[str, str]]:
        return await _sent_events(notifications)

    return collect
