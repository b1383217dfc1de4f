"""Portfolio-domain MCP tools."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from mcp.server.fastmcp import FastMCP

from tracker_server.lib.formatters import format_portfolio_summary
from tracker_server.portfolio.models import AllocationError, Holding
from tracker_server.runtime.response import data_response, error_response, state_response

if TYPE_CHECKING:
    from tracker_server.tools.registry import ToolServices


def register_portfolio_tools(mcp: FastMCP, services: ToolServices) -> None:
    def _mutate(action: Callable[[], Holding], verb: str) -> str:
        try:
            holding = action()
        except AllocationError as error:
            return error_response(error.code, str(error))
        state = services.portfolio.recalculate()
        return state_response(state, message=f"{holding.symbol} {verb}.")

    @mcp.tool(description="Start tracking a symbol with a 0% target allocation.")
    def add_tracked_holding(symbol: str) -> str:
        return _mutate(lambda: services.portfolio.add_holding(symbol), "added")

    @mcp.tool(description="Stop tracking a symbol and redistribute its target allocation.")
    def remove_tracked_holding(symbol: str) -> str:
        return _mutate(lambda: services.portfolio.remove_holding(symbol), "removed")

    @mcp.tool(description="Set a holding's target proportion (0-1); other holdings are rebalanced.")
    def update_holding_proportion(symbol: str, proportion: float) -> str:
        return _mutate(lambda: services.portfolio.update_proportion(symbol, proportion), "updated")

    @mcp.tool(description="Set the managed portfolio total used to size target allocations.")
    def set_managed_total(value: float) -> str:
        return state_response(services.portfolio.set_managed_total(value))

    @mcp.tool(description="Fetch live quotes for every tracked holding and revalue the portfolio.")
    async def refresh_quotes(force: bool = False) -> str:
        if force:
            services.quotes.invalidate()
        state = await services.portfolio.process_cycle()
        return state_response(state)

    @mcp.tool(description="Revalue the portfolio with already-fetched quotes.")
    def recalculate_portfolio() -> str:
        return state_response(services.portfolio.recalculate())

    @mcp.tool(description="Return the current portfolio state as JSON.")
    def get_portfolio_state() -> str:
        return state_response(services.portfolio.snapshot())

    @mcp.tool(description="Return a plain-text allocation summary of the portfolio.")
    def portfolio_summary() -> str:
        return format_portfolio_summary(services.portfolio.snapshot())

    @mcp.tool(description="Return quote cycle and cache metrics.")
    def get_tracker_health() -> str:
        return data_response(services.metrics.snapshot())
