"""Application entrypoint for the stock allocation tracker MCP server."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import asdict

from mcp.server.fastmcp import FastMCP
from starlette.responses import JSONResponse, Response

from tracker_server.config.settings import get_settings
from tracker_server.providers.yahoo_finance import YahooFinanceClient
from tracker_server.resources.portfolio_resources import register_portfolio_resources
from tracker_server.runtime.monitoring import CycleMetrics, configure_logging
from tracker_server.tools.registry import build_tool_services, register_all_tools

LOGGER = logging.getLogger(__name__)


def resolve_transport_mode(configured_mode: str) -> str:
    if os.getenv("RENDER") and configured_mode == "stdio":
        return "http"
    if configured_mode in {"stdio", "http"}:
        return configured_mode
    if os.getenv("RENDER") or os.getenv("PORT"):
        return "http"
    return "stdio"


def resolve_http_transport(configured_transport: str) -> str:
    if configured_transport in {"sse", "streamable"}:
        return configured_transport
    return "sse"


async def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    metrics = CycleMetrics()
    source = YahooFinanceClient(settings.request_timeout_seconds)
    services = build_tool_services(settings, source, metrics=metrics)

    mcp = FastMCP(
        name=settings.app_name,
        host=settings.host,
        port=settings.port,
        streamable_http_path=settings.mcp_path,
    )
    register_all_tools(mcp, services)
    register_portfolio_resources(mcp, services)
    resolved_mode = resolve_transport_mode(settings.transport_mode)
    resolved_http_transport = resolve_http_transport(settings.http_transport)

    @mcp.custom_route(settings.health_path, methods=["GET"])
    async def health_check(_: object) -> Response:
        state = services.portfolio.snapshot()
        return JSONResponse(
            {
                "status": "ok",
                "service": settings.app_name,
                "version": settings.app_version,
                "mode": resolved_mode,
                "holdings": len(state.display_holdings),
                "is_loading": state.is_loading,
                "metrics": asdict(metrics.snapshot()),
            }
        )

    LOGGER.info(
        "tracker starting: mode=%s transport=%s store=%s cache_ttl=%s",
        resolved_mode,
        resolved_http_transport,
        settings.holdings_store_path or "memory",
        settings.quote_cache_ttl_seconds,
    )
    try:
        if resolved_mode == "stdio":
            await mcp.run_stdio_async()
        elif resolved_http_transport == "streamable":
            await mcp.run_streamable_http_async()
        else:
            await mcp.run_sse_async()
    finally:
        services.portfolio.orchestrator.close()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
