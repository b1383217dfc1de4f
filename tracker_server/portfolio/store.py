"""Holding persistence: in-memory and JSON-file stores."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Any, Protocol

from tracker_server.portfolio.allocation import clamp_proportion, normalize_proportions
from tracker_server.portfolio.models import DuplicateSymbolError, Holding, HoldingNotFoundError, normalize_symbol

LOGGER = logging.getLogger(__name__)


class HoldingStore(Protocol):
    """Source of truth for tracked holdings.

    ``list`` returns the live ``Holding`` objects in insertion order; the
    allocation engine mutates them in place and then calls ``commit``.
    """

    def list(self) -> list[Holding]: ...

    def insert(self, holding: Holding) -> None: ...

    def delete(self, holding: Holding) -> None: ...

    def commit(self) -> None: ...


class InMemoryHoldingStore:
    """Insertion-ordered store with a unique constraint on ``symbol``."""

    def __init__(self, holdings: list[Holding] | None = None) -> None:
        self._lock = RLock()
        self._holdings: dict[str, Holding] = {}
        for holding in holdings or []:
            self._insert_unlocked(holding)

    def _insert_unlocked(self, holding: Holding) -> None:
        if holding.symbol in self._holdings:
            raise DuplicateSymbolError(f"{holding.symbol} already added.", symbol=holding.symbol)
        self._holdings[holding.symbol] = holding

    def list(self) -> list[Holding]:
        with self._lock:
            return list(self._holdings.values())

    def insert(self, holding: Holding) -> None:
        with self._lock:
            self._insert_unlocked(holding)
            self._persist()

    def delete(self, holding: Holding) -> None:
        with self._lock:
            if self._holdings.get(holding.symbol) is not holding:
                raise HoldingNotFoundError(f"{holding.symbol} is not tracked.", symbol=holding.symbol)
            del self._holdings[holding.symbol]
            self._persist()

    def commit(self) -> None:
        with self._lock:
            self._persist()

    def _persist(self) -> None:
        return None


def _holding_to_dict(holding: Holding) -> dict[str, Any]:
    return {
        "symbol": holding.symbol,
        "target_proportion": holding.target_proportion,
        "added_at": holding.added_at.isoformat(),
    }


def _holding_from_dict(row: dict[str, Any]) -> Holding:
    try:
        proportion = float(row.get("target_proportion") or 0.0)
    except (TypeError, ValueError):
        proportion = 0.0
    return Holding(
        symbol=normalize_symbol(str(row["symbol"])),
        target_proportion=clamp_proportion(proportion),
        added_at=datetime.fromisoformat(row["added_at"]) if row.get("added_at") else datetime.now(),
    )


class JsonFileHoldingStore(InMemoryHoldingStore):
    """In-memory store mirrored to a JSON file after every write.

    Rows loaded from disk get normalized symbols (first row wins on a
    duplicate) and clamped proportions, and the set is normalized to sum
    to 1.0.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> list[Holding]:
        if not self.path.exists():
            return []
        payload = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        rows = payload.get("holdings", []) if isinstance(payload, dict) else payload
        holdings: dict[str, Holding] = {}
        for row in rows:
            if not isinstance(row, dict) or not str(row.get("symbol") or "").strip():
                continue
            holding = _holding_from_dict(row)
            if holding.symbol in holdings:
                LOGGER.warning("duplicate holding skipped: path=%s symbol=%s", self.path, holding.symbol)
                continue
            holdings[holding.symbol] = holding
        loaded = list(holdings.values())
        normalize_proportions(loaded)
        LOGGER.info("holdings loaded: path=%s count=%s", self.path, len(loaded))
        return loaded

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"holdings": [_holding_to_dict(holding) for holding in self._holdings.values()]}
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=True), encoding="utf-8")
        os.replace(tmp_path, self.path)
