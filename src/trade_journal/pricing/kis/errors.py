from __future__ import annotations

from typing import List, Optional


class KISError(RuntimeError):
    """Base class for failures talking to the KIS OpenAPI."""


class CredentialIssueError(KISError):
    """Token issuance failed or returned an unusable payload. Not retried."""


class VenueUnavailable(KISError):
    """A single venue probe produced no usable daily bars."""

    def __init__(self, venue: str, reason: str):
        super().__init__(f"{venue}: {reason}")
        self.venue = venue
        self.reason = reason


class QuoteNotFound(KISError):
    """Every applicable venue was exhausted without data."""

    def __init__(self, symbol: str, market: str, failures: Optional[List[VenueUnavailable]] = None):
        self.symbol = symbol
        self.market = market
        self.failures = list(failures or [])
        detail = "; ".join(str(f) for f in self.failures) or "no venues tried"
        super().__init__(f"No quote for {symbol} ({market}): {detail}")
