"""Async facade over the synchronous core, used by the routers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from starlette.concurrency import run_in_threadpool

if TYPE_CHECKING:
    from writeflow_service.models import (
        Bid,
        BidResolution,
        Reconciliation,
        Task,
        Transaction,
        TransactionPage,
        Wallet,
    )
    from writeflow_service.services.bid_registry import BidRegistry
    from writeflow_service.services.bid_resolution import BidResolutionEngine
    from writeflow_service.services.notifier import Notifier
    from writeflow_service.services.task_registry import TaskRegistry
    from writeflow_service.services.wallet_engine import WalletEngine


class Marketplace:
    """
    Runs each core operation in Starlette's threadpool so SQLite never blocks
    the event loop, then schedules notifications once the unit has committed.
    """

    def __init__(
        self,
        tasks: TaskRegistry,
        bids: BidRegistry,
        resolution: BidResolutionEngine,
        wallets: WalletEngine,
        notifier: Notifier,
    ) -> None:
        self.tasks = tasks
        self.bids = bids
        self.resolution = resolution
        self.wallets = wallets
        self.notifier = notifier

    # --- tasks ---

    async def create_task(self, data: dict[str, Any]) -> Task:
        return await run_in_threadpool(
            self.tasks.create_task,
            data.get("title"),
            data.get("description"),
            data.get("subject"),
            data.get("pages"),
            data.get("budget"),
            data.get("deadline"),
        )

    async def get_task(self, task_id: str) -> Task:
        return await run_in_threadpool(self.tasks.get_task, task_id)

    async def list_tasks(self, status: str | None) -> list[Task]:
        return await run_in_threadpool(self.tasks.list_tasks, status)

    async def list_available(self) -> list[Task]:
        return await run_in_threadpool(self.tasks.list_available)

    async def update_task(self, task_id: str, patch: dict[str, Any]) -> Task:
        return await run_in_threadpool(self.tasks.update_task, task_id, patch)

    async def delete_task(self, task_id: str) -> None:
        await run_in_threadpool(self.tasks.delete_task, task_id)

    async def start_task(self, task_id: str, writer_id: str) -> Task:
        return await run_in_threadpool(self.tasks.start_task, task_id, writer_id)

    async def complete_task(self, task_id: str) -> Task:
        return await run_in_threadpool(self.tasks.complete_task, task_id)

    async def cancel_task(self, task_id: str) -> Task:
        return await run_in_threadpool(self.tasks.cancel_task, task_id)

    async def get_stats(self) -> dict[str, Any]:
        counts = await run_in_threadpool(self.tasks.count_tasks_by_status)
        return {"total_tasks": sum(counts.values()), "tasks_by_status": counts}

    # --- bids ---

    async def place_bid(self, task_id: str, writer_id: str, amount: object, proposal: object) -> Bid:
        bid = await run_in_threadpool(self.bids.place_bid, task_id, writer_id, amount, proposal)
        self.notifier.bid_placed(bid)
        return bid

    async def get_bids_for_task(self, task_id: str) -> list[Bid]:
        return await run_in_threadpool(self.bids.get_bids_for_task, task_id)

    async def get_bids_for_writer(self, writer_id: str) -> list[Bid]:
        return await run_in_threadpool(self.bids.get_bids_for_writer, writer_id)

    async def withdraw_bid(self, bid_id: str, writer_id: str) -> None:
        await run_in_threadpool(self.bids.withdraw_bid, bid_id, writer_id)

    async def approve_bid(self, bid_id: str) -> BidResolution:
        resolution = await run_in_threadpool(self.resolution.approve_bid, bid_id)
        self.notifier.bid_approved(resolution)
        return resolution

    async def reject_bid(self, bid_id: str) -> Bid:
        bid = await run_in_threadpool(self.resolution.reject_bid, bid_id)
        self.notifier.bid_rejected(bid)
        return bid

    # --- wallets ---

    async def register_writer(self, writer_id: object) -> Wallet:
        return await run_in_threadpool(self.wallets.register_writer, writer_id)

    async def get_wallet(self, writer_id: str) -> Wallet:
        return await run_in_threadpool(self.wallets.get_wallet, writer_id)

    async def apply_transaction(
        self,
        writer_id: str,
        amount: object,
        transaction_type: object,
        description: object,
    ) -> Transaction:
        return await run_in_threadpool(
            self.wallets.apply_transaction,
            writer_id,
            amount,
            transaction_type,
            description,
        )

    async def list_transactions(self, **filters: Any) -> TransactionPage:
        return await run_in_threadpool(lambda: self.wallets.list_transactions(**filters))

    async def reconcile(self, writer_id: str) -> Reconciliation:
        return await run_in_threadpool(self.wallets.reconcile, writer_id)
