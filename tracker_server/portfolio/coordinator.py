"""Processing cycle: normalize, fetch, merge and value tracked holdings."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from datetime import datetime
from typing import Callable

from tracker_server.portfolio.allocation import AllocationEngine, normalize_proportions
from tracker_server.portfolio.models import DisplayHolding, Holding, PortfolioState
from tracker_server.portfolio.store import HoldingStore
from tracker_server.portfolio.valuation import actual_total, clamp_managed_total, value_holding
from tracker_server.providers.models import Quote
from tracker_server.runtime.monitoring import CycleMetrics, log_cycle_event
from tracker_server.services.base import ServiceResult
from tracker_server.services.quote_orchestrator import CycleInProgressError, QuoteOrchestrator

LOGGER = logging.getLogger(__name__)
DEFAULT_MANAGED_TOTAL = 1000.0


class PortfolioCoordinator:
    """Owns the displayed portfolio state and runs quote cycles over it.

    Allocation mutations are applied to the store straight away but only show
    up in ``display_holdings`` after the next ``process_cycle`` or
    ``recalculate``.
    """

    def __init__(
        self,
        store: HoldingStore,
        orchestrator: QuoteOrchestrator,
        managed_total: float = DEFAULT_MANAGED_TOTAL,
        metrics: CycleMetrics | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.engine = AllocationEngine(store, clock=clock)
        self.orchestrator = orchestrator
        self.metrics = metrics
        self._clock = clock
        self._lock = threading.RLock()
        self._managed_total = clamp_managed_total(managed_total)
        self._is_loading = False
        self._display: list[DisplayHolding] = []
        self._actual_total = 0.0
        self._last_refreshed_at: datetime | None = None
        self._known: dict[str, tuple[Quote | None, bool]] = {}
        self._removed: set[str] = set()

    @property
    def managed_total(self) -> float:
        return self._managed_total

    @property
    def is_loading(self) -> bool:
        with self._lock:
            return self._is_loading

    def snapshot(self) -> PortfolioState:
        with self._lock:
            return PortfolioState(
                managed_total=self._managed_total,
                actual_total=self._actual_total,
                is_loading=self._is_loading,
                display_holdings=[replace(item) for item in self._display],
                last_refreshed_at=self._last_refreshed_at,
            )

    def add_holding(self, symbol: str) -> Holding:
        with self._lock:
            added = self.engine.add_holding(symbol)
            self._removed.discard(added.symbol)
            return added

    def remove_holding(self, symbol: str) -> Holding:
        with self._lock:
            removed = self.engine.remove_holding(symbol)
            self._known.pop(removed.symbol, None)
            self._removed.add(removed.symbol)
            return removed

    def update_proportion(self, symbol: str, proportion: float) -> Holding:
        with self._lock:
            return self.engine.update_proportion(symbol, proportion)

    def set_managed_total(self, value: float) -> PortfolioState:
        with self._lock:
            self._managed_total = clamp_managed_total(value)
        return self.recalculate()

    def recalculate(self) -> PortfolioState:
        """Re-value every holding with the quotes from earlier cycles."""
        with self._lock:
            self._display = [
                value_holding(holding, self._managed_total, *self._known.get(holding.symbol, (None, False)))
                for holding in self.store.list()
            ]
            self._actual_total = actual_total(self._display)
        return self.snapshot()

    def _merge(self, symbol: str, result: ServiceResult[Quote]) -> None:
        with self._lock:
            if symbol in self._removed:
                LOGGER.info("quote discarded for removed holding: symbol=%s", symbol)
                return
            for index, item in enumerate(self._display):
                if item.symbol != symbol:
                    continue
                if result.ok:
                    self._known[symbol] = (result.data, False)
                    self._display[index] = value_holding(item, self._managed_total, result.data, fetch_failed=False)
                else:
                    self._known[symbol] = (None, True)
                    self._display[index] = value_holding(item, self._managed_total, None, fetch_failed=True)
                return

    async def process_cycle(self, holdings: list[Holding] | None = None) -> PortfolioState:
        """Run one full cycle and return the resulting state.

        When a cycle is already in flight this returns the current state
        without doing anything.
        """
        with self._lock:
            if self._is_loading:
                LOGGER.warning("quote cycle rejected: a cycle is already in flight")
                if self.metrics is not None:
                    self.metrics.record_rejected_cycle()
                return self.snapshot()
            self._is_loading = True

        started = time.perf_counter()
        successes = 0
        failures = 0
        warning: str | None = None
        try:
            with self._lock:
                self._removed.clear()
                tracked = list(holdings) if holdings is not None else self.store.list()
                normalize_proportions(tracked)
                self.store.commit()
                self._display = [value_holding(holding, self._managed_total) for holding in tracked]
                symbols = [item.symbol for item in self._display]
            LOGGER.info("quote cycle started: symbols=%s", len(symbols))

            try:
                async for symbol, result in self.orchestrator.stream(symbols):
                    if result.ok:
                        successes += 1
                    else:
                        failures += 1
                    self._merge(symbol, result)
            except CycleInProgressError:
                warning = "orchestrator_busy"
                LOGGER.warning("quote cycle skipped fetch: orchestrator already running")

            with self._lock:
                self._actual_total = actual_total(self._display)
                self._last_refreshed_at = self._clock()
                total = self._actual_total
        finally:
            with self._lock:
                self._is_loading = False

        latency_ms = (time.perf_counter() - started) * 1000.0
        if self.metrics is not None:
            self.metrics.record_cycle(latency_ms=latency_ms, successes=successes, failures=failures)
        log_cycle_event(
            symbols=len(symbols),
            successes=successes,
            failures=failures,
            latency_ms=latency_ms,
            actual_total=total,
            warning=warning,
        )
        return self.snapshot()
