"""Read-through quote cache in front of a quote source."""

from __future__ import annotations

import logging

from tracker_server.cache.ttl_cache import TTLCache
from tracker_server.portfolio.models import normalize_symbol
from tracker_server.providers.models import Quote, QuoteSource
from tracker_server.runtime.monitoring import CycleMetrics

LOGGER = logging.getLogger(__name__)
DEFAULT_QUOTE_TTL_SECONDS = 60


class QuoteCache:
    """Memoizes successful quotes for ``ttl_seconds``.

    Failures are never stored, so a symbol that failed is asked for again on
    the very next lookup.
    """

    def __init__(
        self,
        source: QuoteSource,
        cache: TTLCache | None = None,
        ttl_seconds: float = DEFAULT_QUOTE_TTL_SECONDS,
        metrics: CycleMetrics | None = None,
    ) -> None:
        self.source = source
        self.cache = cache if cache is not None else TTLCache(default_ttl_seconds=ttl_seconds)
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics

    def _key(self, symbol: str) -> str:
        return f"quote:{symbol}"

    def peek(self, symbol: str) -> Quote | None:
        cached = self.cache.get(self._key(normalize_symbol(symbol)), ttl_seconds=self.ttl_seconds)
        return cached if isinstance(cached, Quote) else None

    def get(self, symbol: str) -> Quote:
        clean = normalize_symbol(symbol)
        key = self._key(clean)
        cached = self.cache.get(key, ttl_seconds=self.ttl_seconds)
        if isinstance(cached, Quote):
            LOGGER.debug("quote cache hit: symbol=%s", clean)
            if self.metrics is not None:
                self.metrics.record_cache_lookup(hit=True)
            return cached

        if self.metrics is not None:
            self.metrics.record_cache_lookup(hit=False)
        LOGGER.debug("quote cache miss: symbol=%s", clean)
        quote = self.source.fetch_quote(clean)
        self.cache.set(key, quote)
        return quote

    def invalidate(self, symbol: str | None = None) -> None:
        if symbol is None:
            self.cache.clear()
            return
        self.cache.delete(self._key(normalize_symbol(symbol)))
