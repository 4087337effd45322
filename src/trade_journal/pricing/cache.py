from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from trade_journal.core.dates import normalize_iso_date
from trade_journal.core.types import Market
from trade_journal.pricing.kis.errors import QuoteNotFound
from trade_journal.pricing.resolver import QuoteResolver

logger = logging.getLogger(__name__)

PriceFetcher = Callable[[str, Market, Optional[str]], Optional[float]]


@dataclass
class CacheEntry:
    price: float
    inserted_at: float


class ClientQuoteCache:
    """Short-TTL price memo for the interactive trade-entry form.

    Keys are ``"<symbol>-<market>-<date|current>"``. An entry is visible while
    ``now - inserted_at < ttl_sec``; expired entries are dropped on the next read
    of the same key. Concurrent misses on one key both go to the network.
    """

    TTL_SEC = 5 * 60

    def __init__(self, fetch: PriceFetcher, ttl_sec: float = TTL_SEC, clock: Callable[[], float] = time.time):
        self.fetch = fetch
        self.ttl_sec = ttl_sec
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @classmethod
    def from_resolver(cls, resolver: QuoteResolver, **kwargs) -> "ClientQuoteCache":
        def fetch(symbol: str, market: Market, date: Optional[str]) -> Optional[float]:
            quote = resolver.resolve(symbol, market, date)
            return quote.price if quote else None

        return cls(fetch, **kwargs)

    @staticmethod
    def cache_key(symbol: str, market: "Market | str", date: Optional[str] = None) -> str:
        return f"{str(symbol).strip()}-{Market.parse(market).value}-{normalize_iso_date(date) or 'current'}"

    def get(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() - entry.inserted_at >= self.ttl_sec:
            del self._entries[key]
            return None
        return entry.price

    def put(self, key: str, price: float) -> None:
        self._entries[key] = CacheEntry(price=float(price), inserted_at=self.clock())

    def get_or_fetch(self, symbol: str, market: "Market | str", date: Optional[str] = None) -> float:
        """Cached price for the key, else fetch it; raises QuoteNotFound when there is none."""
        symbol = str(symbol).strip()
        if not symbol:
            raise ValueError("symbol must not be blank")
        market = Market.parse(market)
        date = normalize_iso_date(date)
        key = self.cache_key(symbol, market, date)

        cached = self.get(key)
        if cached is not None:
            logger.debug("Price cache hit: %s", key)
            return cached

        logger.debug("Price cache miss: %s", key)
        price = self.fetch(symbol, market, date)
        if not price:
            raise QuoteNotFound(symbol, market.value)
        self.put(key, price)
        return float(price)

    def invalidate(self, symbol: str, market: "Market | str", date: Optional[str] = None) -> None:
        self._entries.pop(self.cache_key(symbol, market, date), None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
