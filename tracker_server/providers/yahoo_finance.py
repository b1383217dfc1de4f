"""Yahoo Finance quote source backed by the public chart endpoint."""

from __future__ import annotations

import math
from typing import Any
from urllib.parse import quote_plus

from tracker_server.providers.http import ProviderError, fetch_json
from tracker_server.providers.models import Quote

CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}?range=1d&interval=1d"
DEFAULT_HEADERS = {"User-Agent": "Mozilla/5.0 (stock-allocation-tracker)"}


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def quote_from_chart_payload(symbol: str, data: Any) -> Quote:
    """Build a ``Quote`` from a decoded chart response.

    Raises ``ProviderError`` with code ``PARSE`` when the payload does not
    carry a chart result for the symbol.
    """
    chart = (data or {}).get("chart") if isinstance(data, dict) else None
    if not isinstance(chart, dict):
        raise ProviderError("yahoo", "PARSE", f"Chart payload missing for {symbol}.")
    if chart.get("error"):
        error = chart["error"]
        detail = error.get("description") if isinstance(error, dict) else str(error)
        raise ProviderError("yahoo", "PARSE", f"Chart error for {symbol}: {detail}")
    results = chart.get("result") or []
    if not results or not isinstance(results[0], dict):
        raise ProviderError("yahoo", "PARSE", f"Chart result missing for {symbol}.")

    meta = results[0].get("meta") or {}
    price = _as_float(meta.get("regularMarketPrice"))
    previous_close = _as_float(meta.get("chartPreviousClose"))
    if previous_close is None:
        previous_close = _as_float(meta.get("previousClose"))

    change: float | None = None
    change_percent: float | None = None
    if price is not None and previous_close:
        change = price - previous_close
        change_percent = change / previous_close * 100.0

    display_name = meta.get("shortName") or meta.get("longName") or meta.get("exchangeName")
    return Quote(
        symbol=symbol,
        display_name=str(display_name) if display_name else None,
        price=price,
        change=change,
        change_percent=change_percent,
    )


class YahooFinanceClient:
    def __init__(self, timeout_seconds: float = 15.0) -> None:
        self.timeout_seconds = timeout_seconds

    def fetch_quote(self, symbol: str) -> Quote:
        upper = symbol.strip().upper()
        url = CHART_URL.format(symbol=quote_plus(upper))
        data = fetch_json(
            url,
            provider="yahoo",
            timeout_seconds=self.timeout_seconds,
            headers=DEFAULT_HEADERS,
        )
        return quote_from_chart_payload(upper, data)
