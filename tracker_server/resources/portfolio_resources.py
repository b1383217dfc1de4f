"""Portfolio resource definitions."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from tracker_server.runtime.response import state_payload

if TYPE_CHECKING:
    from tracker_server.tools.registry import ToolServices

CURRENT_PORTFOLIO_URI = "portfolio://current"
HOLDING_TEMPLATE_URI = "portfolio://holding/{symbol}"


def register_portfolio_resources(mcp: FastMCP, services: "ToolServices") -> None:
    @mcp.resource(
        CURRENT_PORTFOLIO_URI,
        name="current-portfolio",
        title="Current Portfolio State",
        description="Latest valued holdings, managed total, actual total and drift.",
        mime_type="application/json",
    )
    def current_portfolio_resource() -> str:
        return json.dumps(state_payload(services.portfolio.snapshot()), ensure_ascii=True)

    @mcp.resource(
        HOLDING_TEMPLATE_URI,
        name="portfolio-holding",
        title="Portfolio Holding By Symbol",
        description="Valued state of one tracked holding from the latest cycle.",
        mime_type="application/json",
    )
    def holding_resource(symbol: str) -> str:
        state = services.portfolio.snapshot()
        item = state.get(symbol.strip().upper())
        if item is None:
            raise ValueError("Holding not found in the current portfolio state.")
        payload = state_payload(state)
        row = next(row for row in payload["display_holdings"] if row["symbol"] == item.symbol)
        return json.dumps(row, ensure_ascii=True)
