from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Market(str, Enum):
    """Listing market of a security (domestic KRX vs. foreign US venues)."""

    DOMESTIC = "KR"
    FOREIGN = "US"

    @classmethod
    def parse(cls, value: "Market | str") -> "Market":
        if isinstance(value, Market):
            return value
        s = str(value).strip()
        aliases = {"KR": cls.DOMESTIC, "DOMESTIC": cls.DOMESTIC, "US": cls.FOREIGN, "FOREIGN": cls.FOREIGN}
        try:
            return aliases[s.upper()]
        except KeyError:
            raise ValueError(f"Unknown market: {value!r}") from None

    @property
    def currency(self) -> "Currency":
        return Currency.KRW if self is Market.DOMESTIC else Currency.USD


class Currency(str, Enum):
    KRW = "KRW"
    USD = "USD"


class TradeDirection(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Credential:
    """Bearer token issued by the brokerage OAuth2 endpoint.

    Timestamps are unix seconds. A credential is never mutated; a newer one
    supersedes it.
    """

    access_token: str
    token_type: str
    expires_in: float
    issued_at_unix: float
    expires_at_unix: float

    def is_valid(self, now: float, leeway_sec: float = 0.0) -> bool:
        return bool(self.access_token) and now < (self.expires_at_unix - leeway_sec)

    @property
    def authorization(self) -> str:
        return f"{self.token_type} {self.access_token}"


@dataclass(frozen=True)
class DailyBar:
    """One trading day of OHLCV data as returned by the upstream daily-bar APIs."""

    date: str             # YYYY-MM-DD
    close: float
    open: float
    high: float
    low: float
    volume: int
    amount: float = 0.0   # trading amount (거래대금)

    # Domestic bars carry their own day-over-day change; foreign bars don't.
    change: Optional[float] = None
    change_percent: Optional[float] = None


@dataclass(frozen=True)
class Quote:
    symbol: str
    name: str
    price: float          # close of the selected bar
    change: float
    change_percent: float
    volume: int
    high: float
    low: float
    open: float
    market: Market
    currency: Currency
    date: str             # bar date actually used, YYYY-MM-DD

    venue: str = ""
    requested_date: Optional[str] = None

    @property
    def is_date_fallback(self) -> bool:
        """True when a specific date was requested but a different bar was used."""
        return self.requested_date is not None and self.requested_date != self.date

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["market"] = self.market.value
        d["currency"] = self.currency.value
        d.pop("venue")
        d.pop("requested_date")
        return d


@dataclass(frozen=True)
class EnrichmentResult:
    """Derived profit/loss of a trade against a comparison price (full precision)."""

    profit_loss: float
    profit_rate: float    # percent
