"""Normalized quote model and the quote source contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

ProviderName = Literal["yahoo", "unknown"]


@dataclass(frozen=True)
class Quote:
    symbol: str
    display_name: str | None = None
    price: float | None = None
    change: float | None = None
    change_percent: float | None = None


class QuoteSource(Protocol):
    """Anything that can resolve one symbol to a live quote.

    Implementations raise ``ProviderError`` (codes ``NETWORK``, ``PARSE`` or
    ``UNKNOWN``) when the quote cannot be produced. Calls are blocking and are
    run on worker threads by the orchestrator.
    """

    def fetch_quote(self, symbol: str) -> Quote: ...
