"""Response shaping helpers for the tracker's MCP tools."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any

from tracker_server.portfolio.models import PortfolioState

DISCLAIMER = "Data is for informational purposes only and does not constitute financial advice."


def _convert_data(data: Any) -> Any:
    if is_dataclass(data) and not isinstance(data, type):
        return _convert_data(asdict(data))
    if isinstance(data, datetime):
        return data.isoformat()
    if isinstance(data, list):
        return [_convert_data(item) for item in data]
    if isinstance(data, dict):
        return {key: _convert_data(value) for key, value in data.items()}
    return data


def state_payload(state: PortfolioState) -> dict[str, Any]:
    payload = _convert_data(state)
    payload["proportion_total"] = state.proportion_total
    payload["drift"] = state.drift
    return payload


def state_response(state: PortfolioState, message: str | None = None) -> str:
    payload: dict[str, Any] = {
        "data": state_payload(state),
        "timestamp": int(time.time()),
        "disclaimer": DISCLAIMER,
    }
    if message:
        payload["message"] = message
    return json.dumps(payload, ensure_ascii=True)


def data_response(data: Any) -> str:
    return json.dumps({"data": _convert_data(data), "timestamp": int(time.time())}, ensure_ascii=True)


def error_response(code: str, message: str) -> str:
    return json.dumps(
        {
            "error": True,
            "code": code,
            "message": message,
            "timestamp": int(time.time()),
        },
        ensure_ascii=True,
    )
