"""Application state management."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from writeflow_service.clients.notification_client import NotificationClient
    from writeflow_service.services.database import Database
    from writeflow_service.services.marketplace import Marketplace
    from writeflow_service.services.notifier import Notifier
    from writeflow_service.services.token_validator import TokenValidator


@dataclass
class AppState:
    """Runtime application state."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    database: Database | None = None
    marketplace: Marketplace | None = None
    notifier: Notifier | None = None
    notification_client: NotificationClient | None = None
    token_validator: TokenValidator | None = None

    def __setattr__(self, name: str, value: Any) -> None:
        """Keep the notifier pointed at the current notification client."""
        super().__setattr__(name, value)

        notifier = self.__dict__.get("notifier")
        if name == "notification_client" and notifier is not None:
            notifier._client = value
        elif name == "notifier" and value is not None:
            client = self.__dict__.get("notification_client")
            if client is not None:
                value._client = client

    @property
    def uptime_seconds(self) -> float:
        """Calculate uptime in seconds."""
        return (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def started_at(self) -> str:
        """ISO format start time."""
        return self.start_time.isoformat(timespec="seconds").replace("+00:00", "Z")


# Global application state container
_state_container: dict[str, AppState | None] = {"app_state": None}


def get_app_state() -> AppState:
    """Get the current application state."""
    app_state = _state_container["app_state"]
    if app_state is None:
        msg = "Application state not initialized"
        raise RuntimeError(msg)
    return app_state


def init_app_state() -> AppState:
    """Initialize application state. Called during startup."""
    app_state = AppState()
    _state_container["app_state"] = app_state
    return app_state


def reset_app_state() -> None:
    """Reset application state. Used in testing."""
    _state_container["app_state"] = None
