"""API routers."""

from writeflow_service.routers import bids, health, tasks, transactions, writers

__all__ = ["bids", "health", "tasks", "transactions", "writers"]
