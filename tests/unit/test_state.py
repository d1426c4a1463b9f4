"""Application state container tests."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from writeflow_service.core.state import AppState, get_app_state, init_app_state, reset_app_state
from writeflow_service.services.notifier import Notifier

pytestmark = pytest.mark.unit


def test_state_must_be_initialised_first():
    reset_app_state()
    with pytest.raises(RuntimeError):
        get_app_state()


def test_init_replaces_global_state():
    first = init_app_state()
    assert get_app_state() is first
    second = init_app_state()
    assert get_app_state() is second


def test_started_at_is_utc_iso():
    state = AppState(start_time=datetime(2026, 3, 1, 9, 30, tzinfo=UTC))
    assert state.started_at == "2026-03-01T09:30:00Z"
    assert state.uptime_seconds > 0


def test_swapping_client_repoints_notifier():
    state = AppState()
    state.notifier = Notifier(client=None, enabled=True, admin_recipients=[])
    replacement = AsyncMock()

    state.notification_client = replacement

    assert state.notifier._client is replacement


def test_notifier_picks_up_existing_client():
    state = AppState()
    client = AsyncMock()
    state.notification_client = client

    state.notifier = Notifier(client=None, enabled=True, admin_recipients=[])

    assert state.notifier._client is client
