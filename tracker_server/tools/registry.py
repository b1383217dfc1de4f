"""Tool service wiring and registration entrypoint."""

from __future__ import annotations

from dataclasses import dataclass

from mcp.server.fastmcp import FastMCP

from tracker_server.cache.quote_cache import QuoteCache
from tracker_server.cache.ttl_cache import TTLCache
from tracker_server.config.settings import Settings
from tracker_server.portfolio.coordinator import PortfolioCoordinator
from tracker_server.portfolio.store import HoldingStore, InMemoryHoldingStore, JsonFileHoldingStore
from tracker_server.providers.models import QuoteSource
from tracker_server.runtime.monitoring import CycleMetrics
from tracker_server.services.quote_orchestrator import QuoteOrchestrator
from tracker_server.tools.portfolio_tools import register_portfolio_tools


@dataclass
class ToolServices:
    portfolio: PortfolioCoordinator
    quotes: QuoteCache
    metrics: CycleMetrics


def build_store(settings: Settings) -> HoldingStore:
    if settings.holdings_store_path:
        return JsonFileHoldingStore(settings.holdings_store_path)
    return InMemoryHoldingStore()


def build_tool_services(
    settings: Settings,
    source: QuoteSource,
    store: HoldingStore | None = None,
    metrics: CycleMetrics | None = None,
) -> ToolServices:
    metrics = metrics or CycleMetrics()
    quotes = QuoteCache(
        source,
        cache=TTLCache(default_ttl_seconds=settings.quote_cache_ttl_seconds),
        ttl_seconds=settings.quote_cache_ttl_seconds,
        metrics=metrics,
    )
    orchestrator = QuoteOrchestrator(quotes, max_workers=settings.quote_max_workers)
    coordinator = PortfolioCoordinator(
        store if store is not None else build_store(settings),
        orchestrator,
        managed_total=settings.default_managed_total,
        metrics=metrics,
    )
    return ToolServices(portfolio=coordinator, quotes=quotes, metrics=metrics)


def register_all_tools(mcp: FastMCP, services: ToolServices) -> None:
    register_portfolio_tools(mcp, services)
