"""Market-aware quote resolution on top of the KIS daily-bar endpoints.

Domestic tickers trade on a single venue. Foreign tickers may be listed on any
of several US exchanges and the right one isn't known up front, so each venue
is probed in a fixed priority order until one returns bars.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from trade_journal.core.dates import normalize_iso_date
from trade_journal.core.types import Credential, DailyBar, Market, Quote
from trade_journal.pricing.kis.auth import CredentialManager
from trade_journal.pricing.kis.errors import QuoteNotFound, VenueUnavailable
from trade_journal.pricing.kis.quotes import BarSeries, VenueQuoteFetcher

logger = logging.getLogger(__name__)

T = TypeVar("T")


def first_success(
    attempts: Sequence[Tuple[str, Callable[[], T]]],
    *,
    deadline_unix: Optional[float] = None,
    clock: Callable[[], float] = time.time,
) -> Tuple[Optional[T], List[VenueUnavailable]]:
    """Run ``attempts`` in order and return the first result.

    An attempt signals failure by raising VenueUnavailable; the next one is
    tried. Once ``deadline_unix`` has passed the remaining attempts are skipped.
    Returns ``(result, failures)``; result is None when nothing succeeded.
    """
    failures: List[VenueUnavailable] = []
    for name, attempt in attempts:
        if deadline_unix is not None and clock() >= deadline_unix:
            failures.append(VenueUnavailable(name, "skipped: resolution deadline exceeded"))
            continue
        try:
            return attempt(), failures
        except VenueUnavailable as e:
            logger.debug("Venue %s unavailable: %s", name, e.reason)
            failures.append(e)
    return None, failures


def select_bar(bars: Sequence[DailyBar], target_date: Optional[str]) -> Tuple[DailyBar, bool]:
    """Pick the bar for ``target_date``; fall back to ``bars[0]`` (latest).

    Returns ``(bar, exact)``.
    """
    if target_date:
        for bar in bars:
            if bar.date == target_date:
                return bar, True
    return bars[0], target_date is None


def normalize_symbol(symbol: str, market: Market) -> str:
    s = str(symbol or "").strip()
    if not s:
        raise ValueError("symbol must not be blank")
    if market is Market.DOMESTIC:
        return s.zfill(6) if s.isdigit() else s.upper()
    return s.upper()


@dataclass
class ResolverConfig:
    domestic_venues: Tuple[str, ...] = ("J",)
    foreign_venues: Tuple[str, ...] = ("NAS", "NYS", "AMS")
    deadline_sec: float = 30.0


class QuoteResolver:
    """``resolve(symbol, market, target_date) -> Quote | None``.

    Credential issuance failures propagate; venue failures never do.
    """

    def __init__(
        self,
        credentials: CredentialManager,
        fetcher: VenueQuoteFetcher,
        config: Optional[ResolverConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.credentials = credentials
        self.fetcher = fetcher
        self.config = config or ResolverConfig()
        self.clock = clock

    def venues_for(self, market: Market) -> Tuple[str, ...]:
        return self.config.domestic_venues if market is Market.DOMESTIC else self.config.foreign_venues

    def lookup(self, symbol: str, market: "Market | str", target_date: Optional[str] = None) -> Quote:
        """Like resolve(), but raises QuoteNotFound with per-venue reasons."""
        market = Market.parse(market)
        symbol = normalize_symbol(symbol, market)
        target_date = normalize_iso_date(target_date)

        credential = self.credentials.acquire()
        deadline = self.clock() + self.config.deadline_sec

        attempts = [(venue, self._probe(credential, symbol, market, venue, target_date)) for venue in self.venues_for(market)]
        series, failures = first_success(attempts, deadline_unix=deadline, clock=self.clock)
        if series is None:
            logger.warning("No quote for %s (%s) on any venue: %s", symbol, market.value, "; ".join(map(str, failures)))
            raise QuoteNotFound(symbol, market.value, failures)

        bar, exact = select_bar(series.bars, target_date)
        if target_date and not exact:
            logger.warning("%s: no bar for %s, using latest bar %s", symbol, target_date, bar.date)
        quote = self._to_quote(symbol, market, series, bar, target_date)
        logger.info("Resolved %s (%s) on %s: %s @ %s", symbol, market.value, series.venue, quote.price, quote.date)
        return quote

    def resolve(self, symbol: str, market: "Market | str", target_date: Optional[str] = None) -> Optional[Quote]:
        try:
            return self.lookup(symbol, market, target_date)
        except QuoteNotFound:
            return None

    def _probe(
        self, credential: Credential, symbol: str, market: Market, venue: str, target_date: Optional[str]
    ) -> Callable[[], BarSeries]:
        def attempt() -> BarSeries:
            return self.fetcher.fetch(credential, symbol, market, venue, target_date)

        return attempt

    @staticmethod
    def _to_quote(symbol: str, market: Market, series: BarSeries, bar: DailyBar, target_date: Optional[str]) -> Quote:
        if market is Market.DOMESTIC:
            change, change_pct = bar.change, bar.change_percent
        else:
            change, change_pct = series.summary_change, series.summary_change_percent
        return Quote(
            symbol=symbol,
            # Neither daily-price endpoint returns the issue name.
            name=symbol,
            price=bar.close,
            change=change or 0.0,
            change_percent=change_pct or 0.0,
            volume=bar.volume,
            high=bar.high,
            low=bar.low,
            open=bar.open,
            market=market,
            currency=market.currency,
            date=bar.date,
            venue=series.venue,
            requested_date=target_date,
        )
