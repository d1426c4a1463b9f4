"""Best-effort, post-commit notification dispatch."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from writeflow_service.logging import get_logger

if TYPE_CHECKING:
    from writeflow_service.clients.notification_client import NotificationClient
    from writeflow_service.models import Bid, BidResolution, Task


class Notifier:
    """
    Schedules notifications as background tasks after a state change commits.

    Delivery is fire-and-forget: failures are logged at WARNING and never
    reach the caller. Nothing is retried.
    """

    def __init__(
        self,
        client: NotificationClient | None,
        enabled: bool,
        admin_recipients: list[str],
    ) -> None:
        self._client = client
        self._enabled = enabled
        self._admin_recipients = list(admin_recipients)
        self._pending: set[asyncio.Task[None]] = set()
        self._logger = get_logger(__name__)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def bid_placed(self, bid: Bid) -> None:
        payload = {"bid_id": bid.bid_id, "task_id": bid.task_id, "writer_id": bid.writer_id}
        for admin_id in self._admin_recipients:
            self.dispatch("bid_placed", admin_id, payload)

    def bid_approved(self, resolution: BidResolution) -> None:
        """Winner, auto-rejected writers and admins each get their event."""
        approved = resolution.approved
        self.dispatch(
            "bid_approved",
            approved.writer_id,
            {"bid_id": approved.bid_id, "task_id": approved.task_id},
        )
        for rejected in resolution.rejected:
            self.bid_rejected(rejected)
        self.task_assigned(resolution.task)

    def bid_rejected(self, bid: Bid) -> None:
        self.dispatch("bid_rejected", bid.writer_id, {"bid_id": bid.bid_id, "task_id": bid.task_id})

    def task_assigned(self, task: Task) -> None:
        payload = {"task_id": task.task_id, "writer_id": task.assigned_writer_id}
        for admin_id in self._admin_recipients:
            self.dispatch("task_assigned", admin_id, payload)

    def dispatch(self, event: str, recipient_id: str, payload: dict[str, Any]) -> None:
        """Schedule one delivery on the running event loop."""
        if not self._enabled or self._client is None:
            self._logger.debug(
                "Notification dropped (disabled)",
                extra={"event": event, "recipient_id": recipient_id},
            )
            return

        task = asyncio.get_running_loop().create_task(
            self._deliver(self._client, event, recipient_id, payload)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(
        self,
        client: NotificationClient,
        event: str,
        recipient_id: str,
        payload: dict[str, Any],
    ) -> None:
        try:
            await client.send(event, recipient_id, payload)
        except Exception as exc:
            self._logger.warning(
                "Notification delivery failed",
                extra={"event": event, "recipient_id": recipient_id, "error": str(exc)},
            )
            return
        self._logger.info(
            "Notification delivered",
            extra={"event": event, "recipient_id": recipient_id},
        )

    async def drain(self) -> None:
        """Wait for in-flight deliveries. Called on shutdown."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
