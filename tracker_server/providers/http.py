"""Blocking JSON fetch for quote sources, with failures mapped to ProviderError."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal

import requests
from requests.adapters import HTTPAdapter

from tracker_server.providers.models import ProviderName

ProviderErrorCode = Literal["NETWORK", "PARSE", "UNKNOWN"]
TRANSIENT_CODES = {408, 425, 429, 500, 502, 503, 504}

# One pooled session shared by every worker thread of the orchestrator.
_SESSION = requests.Session()
_SESSION.mount("https://", HTTPAdapter(pool_connections=4, pool_maxsize=32))


@dataclass
class ProviderError(Exception):
    provider: ProviderName
    code: ProviderErrorCode
    message: str
    status: int | None = None

    def __str__(self) -> str:
        return self.message


def map_status_to_code(status: int) -> ProviderErrorCode:
    """Timeouts, throttling and 5xx count as network trouble; the rest is unknown."""
    return "NETWORK" if status in TRANSIENT_CODES else "UNKNOWN"


def _decode(response: requests.Response, provider: ProviderName) -> Any:
    if not response.ok:
        raise ProviderError(
            provider,
            map_status_to_code(response.status_code),
            f"Quote request failed with status {response.status_code}.",
            response.status_code,
        )
    try:
        return json.loads(response.text or "null")
    except json.JSONDecodeError as error:
        raise ProviderError(provider, "PARSE", "Quote response was not JSON.", response.status_code) from error


def fetch_json(
    url: str,
    provider: ProviderName,
    timeout_seconds: float = 15.0,
    headers: dict[str, str] | None = None,
) -> Any:
    """GET ``url`` once and return the decoded body.

    There is no retry here: a failed symbol is simply asked for again on the
    next cycle.
    """
    try:
        response = _SESSION.get(url, timeout=timeout_seconds, headers=headers)
    except requests.RequestException as error:
        raise ProviderError(provider, "NETWORK", f"Quote request failed: {type(error).__name__}.") from error
    return _decode(response, provider)
