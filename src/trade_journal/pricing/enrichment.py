from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from trade_journal.core.types import EnrichmentResult, Market, Quote, TradeDirection
from trade_journal.pricing.kis.errors import KISError
from trade_journal.pricing.resolver import QuoteResolver

logger = logging.getLogger(__name__)


class EnrichmentCalculator:
    """Profit/loss of a trade against a comparison price.

    Sign convention
    ---------------
    - BUY:  (price - entry_price) * quantity
    - SELL: (entry_price - price) * quantity

    ``price`` is the realized exit price when one exists, otherwise the
    resolved market price. Values are returned at full precision.
    """

    def compute(
        self,
        entry_price: float,
        quantity: float,
        direction: "TradeDirection | str",
        current_price: Optional[float],
        exit_price: Optional[float] = None,
    ) -> Optional[EnrichmentResult]:
        direction = TradeDirection(str(getattr(direction, "value", direction)).upper())
        if entry_price <= 0 or quantity <= 0:
            raise ValueError(f"entry_price and quantity must be positive (got {entry_price}, {quantity})")

        basis = exit_price if exit_price is not None else current_price
        if basis is None:
            return None

        if direction is TradeDirection.BUY:
            profit = (float(basis) - float(entry_price)) * float(quantity)
        else:
            profit = (float(entry_price) - float(basis)) * float(quantity)
        rate = profit / (float(entry_price) * float(quantity)) * 100.0
        return EnrichmentResult(profit_loss=profit, profit_rate=rate)


@dataclass(frozen=True)
class TradeRequest:
    """What the trade-record workflow knows about a new trade."""

    symbol: str
    market: Market
    direction: TradeDirection
    entry_price: float
    quantity: float
    date: Optional[str] = None  # YYYY-MM-DD; None -> latest
    exit_price: Optional[float] = None


@dataclass(frozen=True)
class TradeEnrichment:
    quote: Optional[Quote] = None
    result: Optional[EnrichmentResult] = None

    @property
    def available(self) -> bool:
        return self.result is not None

    def record_fields(self) -> Dict[str, Any]:
        """Columns attached to the persisted trade record (None when unavailable)."""
        q, r = self.quote, self.result
        return {
            "current_price": q.price if q else None,
            "profit_loss": r.profit_loss if r else None,
            "profit_rate": r.profit_rate if r else None,
            "change": q.change if q else None,
            "change_percent": q.change_percent if q else None,
            "volume": q.volume if q else None,
        }


class TradeEnricher:
    """Boundary used by the trade workflow: never fails the trade on pricing errors."""

    def __init__(self, resolver: QuoteResolver, calculator: Optional[EnrichmentCalculator] = None):
        self.resolver = resolver
        self.calculator = calculator or EnrichmentCalculator()

    def enrich(self, trade: TradeRequest) -> TradeEnrichment:
        # ValueError covers malformed symbol/date/market input and bad entry figures.
        try:
            quote = self.resolver.resolve(trade.symbol, trade.market, trade.date)
            result = self.calculator.compute(
                trade.entry_price,
                trade.quantity,
                trade.direction,
                quote.price if quote else None,
                exit_price=trade.exit_price,
            )
        except (KISError, requests.RequestException, ValueError) as e:
            logger.warning("Pricing unavailable for %r (%s): %s", trade.symbol, getattr(trade.market, "value", trade.market), e)
            return TradeEnrichment()

        if result is None:
            logger.warning("No comparison price for %s; profit/loss left unset", trade.symbol)
        return TradeEnrichment(quote=quote, result=result)
