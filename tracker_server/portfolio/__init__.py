"""Holding allocation domain package."""

from tracker_server.portfolio.models import DisplayHolding, Holding, PortfolioState
from tracker_server.portfolio.allocation import AllocationEngine, normalize_proportions
from tracker_server.portfolio.store import InMemoryHoldingStore, JsonFileHoldingStore

__all__ = [
    "AllocationEngine",
    "DisplayHolding",
    "Holding",
    "InMemoryHoldingStore",
    "JsonFileHoldingStore",
    "PortfolioState",
    "normalize_proportions",
]
