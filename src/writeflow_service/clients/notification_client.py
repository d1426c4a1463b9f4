"""Async HTTP client for the notification (email) collaborator."""

from __future__ import annotations

from typing import Any

import httpx

from writeflow_service.core.exceptions import ServiceError
from writeflow_service.logging import get_logger


class NotificationClient:
    """
    Posts notification events as JSON to the notification service.

    The collaborator owns delivery; this client only hands over the payload
    and reports whether it was accepted.
    """

    def __init__(self, base_url: str, path: str, timeout_seconds: int) -> None:
        self._base_url = base_url
        self._path = path
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    async def send(self, event: str, recipient_id: str, payload: dict[str, Any]) -> None:
        """
        Deliver one event for one recipient.

        Raises:
            ServiceError: NOTIFICATION_UNAVAILABLE (502) on connection errors,
                timeouts or a non-2xx response.
        """
        logger = get_logger(__name__)
        body = {"event": event, "recipient_id": recipient_id, "payload": payload}

        try:
            response = await self._client.post(self._path, json=body)
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning(
                "Notification service connection failed",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise ServiceError(
                error="NOTIFICATION_UNAVAILABLE",
                message="Cannot connect to notification service",
                status_code=502,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "Notification service HTTP error",
                extra={"error": str(exc), "base_url": self._base_url},
            )
            raise ServiceError(
                error="NOTIFICATION_UNAVAILABLE",
                message="Notification request failed",
                status_code=502,
            ) from exc

        if not response.is_success:
            logger.warning(
                "Notification service unexpected status",
                extra={"status_code": response.status_code, "event": event},
            )
            raise ServiceError(
                error="NOTIFICATION_UNAVAILABLE",
                message=f"Notification service returned {response.status_code}",
                status_code=502,
                details={"status_code": response.status_code},
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
