"""Valuation of holdings against the managed total and live quotes."""

from __future__ import annotations

import math

from tracker_server.portfolio.models import DisplayHolding, Holding
from tracker_server.providers.models import Quote


def clamp_managed_total(value: float) -> float:
    try:
        total = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(total) or total < 0:
        return 0.0
    return total


def value_holding(
    holding: Holding | DisplayHolding,
    managed_total: float,
    quote: Quote | None = None,
    fetch_failed: bool = False,
) -> DisplayHolding:
    managed_value = managed_total * holding.target_proportion
    implied_quantity: float | None = None
    current_value: float | None = None
    price = quote.price if quote is not None else None
    if price is not None and math.isfinite(price) and price > 0:
        implied_quantity = managed_value / price
        # Recomputed from the quantity so zero-price and rounding effects show here.
        current_value = implied_quantity * price
    return DisplayHolding(
        symbol=holding.symbol,
        target_proportion=holding.target_proportion,
        managed_value=managed_value,
        quote=quote,
        fetch_failed=fetch_failed,
        implied_quantity=implied_quantity,
        current_value=current_value,
    )


def actual_total(display_holdings: list[DisplayHolding]) -> float:
    return sum(item.current_value or 0.0 for item in display_holdings)
