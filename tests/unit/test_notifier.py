"""Notification dispatch tests: post-commit, fire-and-forget, failures swallowed."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from writeflow_service.models import Bid, BidResolution, BidStatus, Task, TaskStatus
from writeflow_service.services.notifier import Notifier

pytestmark = pytest.mark.unit


def _bid(bid_id: str, writer_id: str, status: BidStatus) -> Bid:
    return Bid(
        bid_id=bid_id,
        task_id="t-1",
        writer_id=writer_id,
        amount=1000,
        proposal="pitch",
        status=status,
        created_at="2026-01-01T00:00:00.000000Z",
        resolved_at=None,
    )


def _task() -> Task:
    return Task(
        task_id="t-1",
        title="T",
        description="D",
        subject="S",
        pages=1,
        budget=1000,
        deadline="2026-02-01T00:00:00.000000Z",
        status=TaskStatus.ASSIGNED,
        assigned_writer_id="w-a",
        created_at="2026-01-01T00:00:00.000000Z",
        updated_at="2026-01-01T00:00:00.000000Z",
    )


async def test_approval_notifies_winner_losers_and_admins():
    client = AsyncMock()
    notifier = Notifier(client=client, enabled=True, admin_recipients=["admin-1"])
    resolution = BidResolution(
        approved=_bid("bid-a", "w-a", BidStatus.APPROVED),
        task=_task(),
        rejected=(_bid("bid-b", "w-b", BidStatus.REJECTED), _bid("bid-c", "w-c", BidStatus.REJECTED)),
    )

    notifier.bid_approved(resolution)
    await notifier.drain()

    sent = [(call.args[0], call.args[1]) for call in client.send.await_args_list]
    assert ("bid_approved", "w-a") in sent
    assert ("bid_rejected", "w-b") in sent
    assert ("bid_rejected", "w-c") in sent
    assert ("task_assigned", "admin-1") in sent
    assert len(sent) == 4


async def test_bid_placed_goes_to_every_admin():
    client = AsyncMock()
    notifier = Notifier(client=client, enabled=True, admin_recipients=["admin-1", "admin-2"])

    notifier.bid_placed(_bid("bid-a", "w-a", BidStatus.PENDING))
    await notifier.drain()

    recipients = sorted(call.args[1] for call in client.send.await_args_list)
    assert recipients == ["admin-1", "admin-2"]
    assert all(call.args[0] == "bid_placed" for call in client.send.await_args_list)


async def test_delivery_failure_is_swallowed():
    client = AsyncMock()
    client.send = AsyncMock(side_effect=ConnectionError("mail relay down"))
    notifier = Notifier(client=client, enabled=True, admin_recipients=[])

    notifier.bid_rejected(_bid("bid-b", "w-b", BidStatus.REJECTED))
    await notifier.drain()

    client.send.assert_awaited_once()
    assert notifier.pending_count == 0


async def test_disabled_notifier_sends_nothing():
    client = AsyncMock()
    notifier = Notifier(client=client, enabled=False, admin_recipients=["admin-1"])

    notifier.bid_rejected(_bid("bid-b", "w-b", BidStatus.REJECTED))
    notifier.bid_placed(_bid("bid-c", "w-c", BidStatus.PENDING))
    await notifier.drain()

    client.send.assert_not_awaited()


async def test_dispatch_does_not_wait_for_delivery():
    client = AsyncMock()
    notifier = Notifier(client=client, enabled=True, admin_recipients=[])

    notifier.dispatch("bid_rejected", "w-b", {"bid_id": "bid-b"})

    assert notifier.pending_count == 1
    client.send.assert_not_awaited()
    await notifier.drain()
    client.send.assert_awaited_once_with("bid_rejected", "w-b", {"bid_id": "bid-b"})
