import asyncio
import threading
from datetime import datetime

import pytest

from tracker_server.cache.quote_cache import QuoteCache
from tracker_server.portfolio.coordinator import PortfolioCoordinator
from tracker_server.portfolio.models import Holding
from tracker_server.portfolio.store import InMemoryHoldingStore
from tracker_server.providers.http import ProviderError
from tracker_server.providers.models import Quote
from tracker_server.runtime.monitoring import CycleMetrics
from tracker_server.services.quote_orchestrator import QuoteOrchestrator

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0)


class _PriceSource:
    def __init__(self, prices: dict[str, float], failing: set[str] | None = None, gate: threading.Event | None = None) -> None:
        self.prices = prices
        self.failing = failing or set()
        self.gate = gate

    def fetch_quote(self, symbol: str) -> Quote:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if symbol in self.failing:
            raise ProviderError("yahoo", "NETWORK", "Provider request failed due to network error.")
        return Quote(symbol=symbol, display_name=f"{symbol} Inc.", price=self.prices[symbol])


def _coordinator(
    source: _PriceSource,
    proportions: dict[str, float],
    managed_total: float = 1000.0,
    metrics: CycleMetrics | None = None,
) -> PortfolioCoordinator:
    store = InMemoryHoldingStore([Holding(symbol, value) for symbol, value in proportions.items()])
    orchestrator = QuoteOrchestrator(QuoteCache(source), max_workers=4)
    return PortfolioCoordinator(store, orchestrator, managed_total=managed_total, metrics=metrics, clock=lambda: FIXED_NOW)


async def _wait_until_loading(coordinator: PortfolioCoordinator) -> None:
    for _ in range(50):
        if coordinator.is_loading:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("cycle never started")


def test_cycle_values_every_holding() -> None:
    metrics = CycleMetrics()
    coordinator = _coordinator(_PriceSource({"A": 100.0, "B": 50.0}), {"A": 0.5, "B": 0.5}, metrics=metrics)

    state = asyncio.run(coordinator.process_cycle())
    coordinator.orchestrator.close()

    a, b = state.get("A"), state.get("B")
    assert a.managed_value == pytest.approx(500.0)
    assert a.implied_quantity == pytest.approx(5.0)
    assert b.implied_quantity == pytest.approx(10.0)
    assert state.actual_total == pytest.approx(1000.0)
    assert state.drift == pytest.approx(0.0)
    assert state.is_loading is False
    assert state.last_refreshed_at == FIXED_NOW
    assert a.quote.display_name == "A Inc."

    snapshot = metrics.snapshot()
    assert snapshot.cycles_completed == 1
    assert snapshot.quote_successes == 2
    assert snapshot.quote_failures == 0


def test_failed_symbol_is_marked_and_left_out_of_actual_total() -> None:
    metrics = CycleMetrics()
    coordinator = _coordinator(
        _PriceSource({"A": 100.0}, failing={"B"}),
        {"A": 0.5, "B": 0.5},
        metrics=metrics,
    )

    state = asyncio.run(coordinator.process_cycle())
    coordinator.orchestrator.close()

    assert state.get("A").fetch_failed is False
    assert state.get("B").fetch_failed is True
    assert state.get("B").quote is None
    assert state.get("B").current_value is None
    assert state.actual_total == pytest.approx(500.0)
    assert state.drift == pytest.approx(-500.0)
    assert metrics.snapshot().quote_failures == 1


def test_cycle_normalizes_proportions_before_fetching() -> None:
    coordinator = _coordinator(_PriceSource({"A": 10.0, "B": 20.0, "C": 40.0}), {"A": 0.2, "B": 0.5, "C": 0.2})

    state = asyncio.run(coordinator.process_cycle())
    coordinator.orchestrator.close()

    assert [item.symbol for item in state.display_holdings] == ["A", "B", "C"]
    assert state.proportion_total == pytest.approx(1.0, abs=1e-4)
    assert state.get("B").target_proportion == pytest.approx(0.6)
    assert [holding.target_proportion for holding in coordinator.store.list()] == [0.2, pytest.approx(0.6), 0.2]


def test_empty_portfolio_cycle() -> None:
    coordinator = _coordinator(_PriceSource({}), {})

    state = asyncio.run(coordinator.process_cycle())
    coordinator.orchestrator.close()

    assert state.display_holdings == []
    assert state.actual_total == 0.0
    assert state.drift == pytest.approx(-1000.0)


def test_mutations_show_up_only_after_recalculate() -> None:
    coordinator = _coordinator(_PriceSource({"A": 100.0, "B": 50.0}), {"A": 0.5, "B": 0.5})
    asyncio.run(coordinator.process_cycle())

    coordinator.update_proportion("A", 0.8)
    assert coordinator.snapshot().get("A").target_proportion == pytest.approx(0.5)

    state = coordinator.recalculate()
    coordinator.orchestrator.close()

    assert state.get("A").target_proportion == pytest.approx(0.8)
    assert state.get("A").implied_quantity == pytest.approx(8.0)
    assert state.get("B").implied_quantity == pytest.approx(4.0)
    assert state.actual_total == pytest.approx(1000.0)


def test_set_managed_total_revalues_with_known_quotes() -> None:
    coordinator = _coordinator(_PriceSource({"A": 100.0, "B": 50.0}), {"A": 0.5, "B": 0.5})
    asyncio.run(coordinator.process_cycle())

    state = coordinator.set_managed_total(2000.0)
    assert state.managed_total == 2000.0
    assert state.get("A").implied_quantity == pytest.approx(10.0)
    assert state.actual_total == pytest.approx(2000.0)

    state = coordinator.set_managed_total(-50.0)
    coordinator.orchestrator.close()
    assert state.managed_total == 0.0
    assert state.get("A").managed_value == 0.0
    assert state.actual_total == 0.0


def test_concurrent_cycle_is_rejected() -> None:
    gate = threading.Event()
    metrics = CycleMetrics()
    coordinator = _coordinator(_PriceSource({"A": 100.0}, gate=gate), {"A": 1.0}, metrics=metrics)

    async def scenario():
        first = asyncio.create_task(coordinator.process_cycle())
        await _wait_until_loading(coordinator)
        rejected = await coordinator.process_cycle()
        gate.set()
        return rejected, await first

    try:
        rejected, completed = asyncio.run(scenario())
    finally:
        gate.set()
        coordinator.orchestrator.close()

    assert rejected.is_loading is True
    assert completed.is_loading is False
    assert completed.actual_total == pytest.approx(1000.0)
    snapshot = metrics.snapshot()
    assert snapshot.cycles_rejected == 1
    assert snapshot.cycles_completed == 1


def test_quote_for_holding_removed_mid_cycle_is_discarded() -> None:
    gate = threading.Event()
    coordinator = _coordinator(_PriceSource({"A": 100.0, "B": 50.0}, gate=gate), {"A": 0.5, "B": 0.5})

    async def scenario():
        cycle = asyncio.create_task(coordinator.process_cycle())
        await _wait_until_loading(coordinator)
        coordinator.remove_holding("B")
        coordinator.recalculate()
        gate.set()
        return await cycle

    try:
        state = asyncio.run(scenario())
    finally:
        gate.set()
        coordinator.orchestrator.close()

    assert [item.symbol for item in state.display_holdings] == ["A"]
    assert state.get("A").target_proportion == pytest.approx(1.0)
    assert state.actual_total == pytest.approx(1000.0)


def test_holding_removed_and_re_added_mid_cycle_keeps_fresh_quote() -> None:
    gate = threading.Event()
    coordinator = _coordinator(_PriceSource({"A": 100.0, "B": 50.0}, gate=gate), {"A": 0.5, "B": 0.5})

    async def scenario():
        cycle = asyncio.create_task(coordinator.process_cycle())
        await _wait_until_loading(coordinator)
        coordinator.remove_holding("B")
        coordinator.add_holding("B")
        coordinator.update_proportion("B", 0.5)
        coordinator.recalculate()
        gate.set()
        return await cycle

    try:
        state = asyncio.run(scenario())
    finally:
        gate.set()
        coordinator.orchestrator.close()

    assert [item.symbol for item in state.display_holdings] == ["A", "B"]
    assert state.get("B").quote is not None
    assert state.get("B").fetch_failed is False
    assert state.get("B").implied_quantity == pytest.approx(10.0)
    assert state.actual_total == pytest.approx(1000.0)


def test_snapshot_is_a_copy() -> None:
    coordinator = _coordinator(_PriceSource({"A": 100.0}), {"A": 1.0})
    asyncio.run(coordinator.process_cycle())
    coordinator.orchestrator.close()

    state = coordinator.snapshot()
    state.display_holdings[0].managed_value = -1.0
    state.display_holdings.clear()

    assert coordinator.snapshot().get("A").managed_value == pytest.approx(1000.0)
