"""Service layer components."""

from writeflow_service.services.bid_registry import BidRegistry
from writeflow_service.services.bid_resolution import BidResolutionEngine
from writeflow_service.services.database import Database
from writeflow_service.services.marketplace import Marketplace
from writeflow_service.services.notifier import Notifier
from writeflow_service.services.task_registry import TaskRegistry
from writeflow_service.services.token_validator import Actor, TokenValidator
from writeflow_service.services.wallet_engine import WalletEngine

__all__ = [
    "Actor",
    "BidRegistry",
    "BidResolutionEngine",
    "Database",
    "Marketplace",
    "Notifier",
    "TaskRegistry",
    "TokenValidator",
    "WalletEngine",
]
