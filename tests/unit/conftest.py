"""Unit test fixtures: auto-clear caches, and core components on a temp database."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests.helpers import future_deadline
from writeflow_service.config import clear_settings_cache
from writeflow_service.core.state import reset_app_state
from writeflow_service.services.bid_registry import BidRegistry
from writeflow_service.services.bid_resolution import BidResolutionEngine
from writeflow_service.services.database import Database
from writeflow_service.services.task_registry import TaskRegistry
from writeflow_service.services.wallet_engine import WalletEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from writeflow_service.models import Task


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear settings cache and app state between tests."""
    clear_settings_cache()
    reset_app_state()
    yield
    clear_settings_cache()
    reset_app_state()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "writeflow.db")


@pytest.fixture
def database(db_path: str) -> Iterator[Database]:
    """A fresh file-backed database, closed after the test."""
    db = Database(db_path=db_path)
    yield db
    db.close()


@pytest.fixture
def task_registry(database: Database) -> TaskRegistry:
    return TaskRegistry(database)


@pytest.fixture
def bid_registry(database: Database) -> BidRegistry:
    return BidRegistry(database)


@pytest.fixture
def resolution_engine(database: Database) -> BidResolutionEngine:
    return BidResolutionEngine(database)


@pytest.fixture
def wallet_engine(database: Database) -> WalletEngine:
    return WalletEngine(database)


@pytest.fixture
def make_task(task_registry: TaskRegistry) -> Callable[..., Task]:
    """Create an OPEN task with sensible defaults; keyword overrides allowed."""

    def _make(**overrides: object) -> Task:
        fields: dict[str, object] = {
            "title": "Essay on renewable energy",
            "description": "1500 words, APA style",
            "subject": "Environmental science",
            "pages": 6,
            "budget": "200.00",
            "deadline": future_deadline(),
        }
        fields.update(overrides)
        return task_registry.create_task(**fields)  # type: ignore[arg-type]

    return _make
