"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from writeflow_service.clients.notification_client import NotificationClient
from writeflow_service.config import get_settings
from writeflow_service.core.state import init_app_state
from writeflow_service.logging import get_logger, setup_logging
from writeflow_service.services.bid_registry import BidRegistry
from writeflow_service.services.bid_resolution import BidResolutionEngine
from writeflow_service.services.database import Database
from writeflow_service.services.marketplace import Marketplace
from writeflow_service.services.notifier import Notifier
from writeflow_service.services.task_registry import TaskRegistry
from writeflow_service.services.token_validator import TokenValidator
from writeflow_service.services.wallet_engine import WalletEngine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.logging.directory)
    logger = get_logger(__name__)

    state = init_app_state()

    database = Database(
        db_path=settings.database.path,
        busy_timeout_ms=settings.database.busy_timeout_ms,
    )
    state.database = database

    notification_client = NotificationClient(
        base_url=settings.notifications.base_url,
        path=settings.notifications.path,
        timeout_seconds=settings.notifications.timeout_seconds,
    )
    state.notification_client = notification_client

    notifier = Notifier(
        client=notification_client,
        enabled=settings.notifications.enabled,
        admin_recipients=settings.notifications.admin_recipients,
    )
    state.notifier = notifier

    state.token_validator = TokenValidator(
        secret=settings.auth.jwt_secret,
        algorithm=settings.auth.algorithm,
    )

    state.marketplace = Marketplace(
        tasks=TaskRegistry(database),
        bids=BidRegistry(database),
        resolution=BidResolutionEngine(database),
        wallets=WalletEngine(database, max_page_size=settings.pagination.max_limit),
        notifier=notifier,
    )

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "db_path": settings.database.path,
            "notifications_enabled": settings.notifications.enabled,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    await notifier.drain()
    await notification_client.close()
    database.close()
