"""Typed portfolio models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from tracker_server.providers.models import Quote


class AllocationError(ValueError):
    """Base class for rejected allocation mutations."""

    code = "ALLOCATION_ERROR"

    def __init__(self, message: str, symbol: str | None = None) -> None:
        super().__init__(message)
        self.symbol = symbol


class EmptySymbolError(AllocationError):
    code = "EMPTY_SYMBOL"


class DuplicateSymbolError(AllocationError):
    code = "DUPLICATE_SYMBOL"


class HoldingNotFoundError(AllocationError):
    code = "NOT_FOUND"


@dataclass
class Holding:
    symbol: str
    target_proportion: float = 0.0
    added_at: datetime = field(default_factory=datetime.now)


@dataclass
class DisplayHolding:
    symbol: str
    target_proportion: float
    managed_value: float
    quote: Quote | None = None
    fetch_failed: bool = False
    implied_quantity: float | None = None
    current_value: float | None = None


@dataclass
class PortfolioState:
    managed_total: float = 0.0
    actual_total: float = 0.0
    is_loading: bool = False
    display_holdings: list[DisplayHolding] = field(default_factory=list)
    last_refreshed_at: datetime | None = None

    @property
    def proportion_total(self) -> float:
        return sum(item.target_proportion for item in self.display_holdings)

    @property
    def drift(self) -> float:
        return self.actual_total - self.managed_total

    def get(self, symbol: str) -> DisplayHolding | None:
        for item in self.display_holdings:
            if item.symbol == symbol:
                return item
        return None


def normalize_symbol(symbol: str) -> str:
    clean = (symbol or "").strip().upper()
    if not clean:
        raise EmptySymbolError("Symbol cannot be empty.")
    return clean
