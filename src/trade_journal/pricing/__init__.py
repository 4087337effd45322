"""Market pricing gateway.

Resolves a daily close for a trade's symbol from the brokerage API and derives
the trade's profit/loss:

- **QuoteResolver**: domestic single-venue lookup, foreign ordered venue probe,
  exact-date bar selection with fallback to the latest bar.
- **EnrichmentCalculator / TradeEnricher**: profit/loss for the trade record;
  pricing failures never block recording the trade.
- **ClientQuoteCache**: 5-minute price memo for the entry form.
"""

from .cache import ClientQuoteCache
from .enrichment import EnrichmentCalculator, TradeEnricher, TradeEnrichment, TradeRequest
from .gateway import PricingGateway
from .resolver import QuoteResolver

__all__ = [
    "ClientQuoteCache",
    "EnrichmentCalculator",
    "PricingGateway",
    "QuoteResolver",
    "TradeEnricher",
    "TradeEnrichment",
    "TradeRequest",
]
