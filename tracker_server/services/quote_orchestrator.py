"""Concurrent fan-out of quote lookups with per-symbol failure isolation."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import AsyncIterator, Iterable

from tracker_server.cache.quote_cache import QuoteCache
from tracker_server.providers.http import ProviderError
from tracker_server.providers.models import Quote
from tracker_server.services.base import ServiceResult, envelope_from_provider_error, envelope_from_unexpected

LOGGER = logging.getLogger(__name__)
DEFAULT_MAX_WORKERS = 16

QuoteOutcome = tuple[str, ServiceResult[Quote]]


class CycleInProgressError(RuntimeError):
    def __init__(self) -> None:
        super().__init__("A quote fetch batch is already in flight.")


class QuoteOrchestrator:
    """Fetches one quote per symbol, all at once, through the quote cache.

    Each lookup runs on its own worker thread. A failing symbol is reported as
    an error result and never cancels or delays the others. Only one batch may
    be in flight at a time.
    """

    def __init__(self, quotes: QuoteCache, max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        self.quotes = quotes
        self.max_workers = max(1, max_workers)
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="quote-fetch")
        self._guard = threading.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        with self._guard:
            return self._running

    def _begin(self) -> None:
        with self._guard:
            if self._running:
                raise CycleInProgressError()
            self._running = True

    def _end(self) -> None:
        with self._guard:
            self._running = False

    def _fetch_one(self, symbol: str) -> QuoteOutcome:
        started = time.perf_counter()
        try:
            quote = self.quotes.get(symbol)
        except ProviderError as error:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            LOGGER.warning(
                "quote fetch failed: symbol=%s provider=%s code=%s status=%s latency_ms=%s",
                symbol,
                error.provider,
                error.code,
                error.status,
                elapsed_ms,
            )
            return symbol, ServiceResult(data=None, error=envelope_from_provider_error(error))
        except Exception as error:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            LOGGER.exception("quote fetch unexpected failure: symbol=%s latency_ms=%s", symbol, elapsed_ms)
            return symbol, ServiceResult(data=None, error=envelope_from_unexpected(error))

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        LOGGER.debug("quote fetch complete: symbol=%s latency_ms=%s", symbol, elapsed_ms)
        return symbol, ServiceResult(data=quote, fetched_at=time.time())

    async def stream(self, symbols: Iterable[str]) -> AsyncIterator[QuoteOutcome]:
        """Yield ``(symbol, result)`` pairs in the order the lookups finish.

        Raises ``CycleInProgressError`` on the first iteration when another
        batch has not finished yet.
        """
        unique = list(dict.fromkeys(symbols))
        self._begin()
        try:
            loop = asyncio.get_running_loop()
            pending = [loop.run_in_executor(self._executor, self._fetch_one, symbol) for symbol in unique]
            for next_done in asyncio.as_completed(pending):
                yield await next_done
        finally:
            self._end()

    async def fetch_all(self, symbols: Iterable[str]) -> dict[str, ServiceResult[Quote]]:
        results: dict[str, ServiceResult[Quote]] = {}
        async for symbol, result in self.stream(symbols):
            results[symbol] = result
        return results

    def close(self) -> None:
        self._executor.shutdown(wait=False)
