"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Runtime settings for local/stdio and HTTP-hosted modes."""

    app_name: str = "stock-allocation-tracker"
    app_version: str = "1.0.0"
    transport_mode: str = "auto"
    http_transport: str = "sse"
    host: str = "0.0.0.0"
    port: int = 8000
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    request_timeout_seconds: float = 15.0
    quote_cache_ttl_seconds: int = 60
    quote_max_workers: int = 16
    default_managed_total: float = 1000.0
    holdings_store_path: str | None = None
    log_level: str = "INFO"


def _as_int(value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def get_settings() -> Settings:
    """Load runtime settings from environment variables."""
    load_dotenv()

    return Settings(
        app_name=os.getenv("APP_NAME", "stock-allocation-tracker"),
        transport_mode=os.getenv("TRANSPORT_MODE", "auto").strip().lower(),
        http_transport=os.getenv("HTTP_TRANSPORT", "sse").strip().lower(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int(os.getenv("PORT"), 8000),
        mcp_path=os.getenv("MCP_PATH", "/mcp"),
        health_path=os.getenv("HEALTH_PATH", "/health"),
        request_timeout_seconds=_as_float(os.getenv("REQUEST_TIMEOUT_SECONDS"), 15.0),
        quote_cache_ttl_seconds=max(0, _as_int(os.getenv("QUOTE_CACHE_TTL_SECONDS"), 60)),
        quote_max_workers=max(1, _as_int(os.getenv("QUOTE_MAX_WORKERS"), 16)),
        default_managed_total=max(0.0, _as_float(os.getenv("DEFAULT_MANAGED_TOTAL"), 1000.0)),
        holdings_store_path=os.getenv("HOLDINGS_STORE_PATH") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
