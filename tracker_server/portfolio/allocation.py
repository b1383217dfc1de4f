"""Target-proportion bookkeeping for tracked holdings.

Every completed mutation leaves the proportions of all tracked holdings
summing to 1.0 (within ``SUM_TOLERANCE``), with each proportion in [0, 1].

Redistribution is weight-proportional: when a holding is removed or
re-weighted, the freed or claimed proportion is spread over the other holdings
according to each one's share of their combined proportion. When the others
all sit at zero that share is undefined, so the remainder is split equally.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from tracker_server.portfolio.models import DuplicateSymbolError, Holding, HoldingNotFoundError, normalize_symbol

if TYPE_CHECKING:
    from tracker_server.portfolio.store import HoldingStore

LOGGER = logging.getLogger(__name__)
EPSILON = 1e-9
SUM_TOLERANCE = 1e-4


def clamp_proportion(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return min(1.0, max(0.0, float(value)))


def total_proportion(holdings: list[Holding]) -> float:
    return sum(holding.target_proportion for holding in holdings)


def _equal_split(holdings: list[Holding]) -> None:
    share = 1.0 / len(holdings)
    for holding in holdings:
        holding.target_proportion = share


def normalize_proportions(holdings: list[Holding]) -> None:
    """Force the proportions of ``holdings`` to sum to exactly 1.0.

    The whole difference is applied to the holding with the largest current
    proportion (the first one in list order on ties). If clamping that holding
    to [0, 1] cannot absorb the difference, the set is rescaled by weight, or
    split equally when nothing carries weight.
    """
    if not holdings:
        return
    diff = 1.0 - total_proportion(holdings)
    if abs(diff) < EPSILON:
        return

    largest: Holding | None = None
    for holding in holdings:
        if largest is None or holding.target_proportion > largest.target_proportion:
            largest = holding
    if largest is None:
        _equal_split(holdings)
        return
    largest.target_proportion = clamp_proportion(largest.target_proportion + diff)

    total = total_proportion(holdings)
    if abs(1.0 - total) < SUM_TOLERANCE:
        return
    if total > EPSILON:
        for holding in holdings:
            holding.target_proportion = clamp_proportion(holding.target_proportion / total)
    else:
        _equal_split(holdings)


class AllocationEngine:
    def __init__(self, store: HoldingStore, clock: Callable[[], datetime] = datetime.now) -> None:
        self.store = store
        self._clock = clock

    def holdings(self) -> list[Holding]:
        return self.store.list()

    def find(self, symbol: str) -> Holding:
        clean = normalize_symbol(symbol)
        for holding in self.store.list():
            if holding.symbol == clean:
                return holding
        raise HoldingNotFoundError(f"{clean} is not tracked.", symbol=clean)

    def is_tracked(self, symbol: str) -> bool:
        return any(holding.symbol == symbol for holding in self.store.list())

    def add_holding(self, symbol: str) -> Holding:
        clean = normalize_symbol(symbol)
        if self.is_tracked(clean):
            raise DuplicateSymbolError(f"{clean} already added.", symbol=clean)

        holding = Holding(symbol=clean, target_proportion=0.0, added_at=self._clock())
        self.store.insert(holding)
        # A zero-weight newcomer leaves a valid set untouched; this only
        # matters when it is the first holding.
        normalize_proportions(self.store.list())
        self.store.commit()
        LOGGER.info("holding added: symbol=%s proportion=%s", clean, holding.target_proportion)
        return holding

    def remove_holding(self, symbol: str) -> Holding:
        target = self.find(symbol)
        remaining = [holding for holding in self.store.list() if holding is not target]
        freed = target.target_proportion
        self.store.delete(target)

        if remaining:
            remaining_total = total_proportion(remaining)
            if remaining_total > EPSILON:
                for holding in remaining:
                    holding.target_proportion += freed * (holding.target_proportion / remaining_total)
            else:
                _equal_split(remaining)
            normalize_proportions(remaining)
        self.store.commit()
        LOGGER.info("holding removed: symbol=%s freed=%s remaining=%s", target.symbol, freed, len(remaining))
        return target

    def update_proportion(self, symbol: str, requested: float) -> Holding:
        target = self.find(symbol)
        clamped = clamp_proportion(requested)
        delta = clamped - target.target_proportion
        if abs(delta) < EPSILON:
            return target

        holdings = self.store.list()
        others = [holding for holding in holdings if holding is not target]
        others_total = total_proportion(others)
        target.target_proportion = clamped

        if others:
            if others_total > EPSILON:
                for holding in others:
                    share = holding.target_proportion / others_total
                    holding.target_proportion = clamp_proportion(holding.target_proportion - delta * share)
            else:
                split = max(0.0, (1.0 - clamped) / len(others))
                for holding in others:
                    holding.target_proportion = split
        normalize_proportions(holdings)
        self.store.commit()
        LOGGER.info(
            "proportion updated: symbol=%s requested=%s applied=%s",
            target.symbol,
            requested,
            target.target_proportion,
        )
        return target
