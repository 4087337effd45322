from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from trade_journal.core.dates import to_upstream_date
from trade_journal.core.types import Credential, DailyBar, Market

from .client import KISClient
from .errors import VenueUnavailable

logger = logging.getLogger(__name__)


@dataclass
class QuoteEndpoints:
    """Endpoint paths and TR-IDs (configurable, KIS revises them)."""

    domestic_daily: str = "/uapi/domestic-stock/v1/quotations/inquire-daily-price"
    domestic_tr_id: str = "FHKST01010400"
    domestic_market_code: str = "J"

    foreign_daily: str = "/uapi/overseas-price/v1/quotations/dailyprice"
    foreign_tr_id: str = "HHDFS76240000"


@dataclass(frozen=True)
class BarSchema:
    date_col: str
    open_col: str
    high_col: str
    low_col: str
    close_col: str
    volume_col: str
    amount_col: str
    change_col: Optional[str] = None
    change_rate_col: Optional[str] = None


# 주식영업일자/시가/고가/저가/종가/누적거래량/누적거래대금/전일대비/전일대비율
DOMESTIC_SCHEMA = BarSchema(
    "stck_bsop_date", "stck_oprc", "stck_hgpr", "stck_lwpr", "stck_clpr", "acml_vol", "acml_tr_pbmn",
    change_col="prdy_vrss", change_rate_col="prdy_ctrt",
)
FOREIGN_SCHEMA = BarSchema("xymd", "open", "high", "low", "clos", "tvol", "tamt")


def _opt_float(v: Any) -> Optional[float]:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return None if pd.isna(f) else f


def parse_bars(rows: Any, schema: BarSchema) -> List[DailyBar]:
    """Normalize raw daily-bar rows into DailyBar records, keeping upstream order.

    Rules
    -----
    - Rows whose date is not 8 digits, or whose close is missing/<=0, are dropped
      (the foreign API pads its output with blank rows on non-trading days)
    - Missing or non-positive open/high/low are filled with close
    - Missing volume/amount become 0
    """
    if not isinstance(rows, list) or not rows:
        return []
    df = pd.DataFrame([r for r in rows if isinstance(r, dict)])
    required = [schema.date_col, schema.close_col]
    if df.empty or not set(required).issubset(df.columns):
        return []

    out = pd.DataFrame({"date": df[schema.date_col].astype(str).str.strip()})
    cols = {
        "open": schema.open_col,
        "high": schema.high_col,
        "low": schema.low_col,
        "close": schema.close_col,
        "volume": schema.volume_col,
        "amount": schema.amount_col,
        "change": schema.change_col,
        "change_percent": schema.change_rate_col,
    }
    for name, src in cols.items():
        if src and src in df.columns:
            out[name] = pd.to_numeric(df[src], errors="coerce")
        else:
            out[name] = float("nan")

    out = out[out["date"].str.fullmatch(r"\d{8}")].copy()
    out["date"] = pd.to_datetime(out["date"], format="%Y%m%d", errors="coerce")
    out = out[out["date"].notna() & (out["close"] > 0)].copy()
    out["date"] = out["date"].dt.strftime("%Y-%m-%d")
    for c in ["open", "high", "low"]:
        out.loc[~(out[c] > 0), c] = float("nan")
        out[c] = out[c].fillna(out["close"])
    out[["volume", "amount"]] = out[["volume", "amount"]].fillna(0)

    return [
        DailyBar(
            date=str(r.date),
            close=float(r.close),
            open=float(r.open),
            high=float(r.high),
            low=float(r.low),
            volume=int(r.volume),
            amount=float(r.amount),
            change=_opt_float(r.change),
            change_percent=_opt_float(r.change_percent),
        )
        for r in out.itertuples(index=False)
    ]


@dataclass
class BarSeries:
    """Parsed daily bars from one venue, most recent first (as sent upstream)."""

    venue: str
    bars: List[DailyBar]
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def summary_change(self) -> Optional[float]:
        return _opt_float(self.summary.get("diff"))

    @property
    def summary_change_percent(self) -> Optional[float]:
        return _opt_float(self.summary.get("rate"))


class VenueQuoteFetcher:
    """Issues one daily-bar request against one venue and parses the reply.

    Any failure (transport, HTTP status, ``rt_cd``, empty data) is raised as
    VenueUnavailable; the caller decides whether to move on to another venue.
    """

    def __init__(self, client: KISClient, endpoints: Optional[QuoteEndpoints] = None):
        self.client = client
        self.endpoints = endpoints or QuoteEndpoints()

    def fetch(
        self,
        credential: Credential,
        symbol: str,
        market: Market,
        venue: str,
        target_date: Optional[str] = None,
    ) -> BarSeries:
        if market is Market.DOMESTIC:
            path, tr_id = self.endpoints.domestic_daily, self.endpoints.domestic_tr_id
            # Full history; the domestic endpoint has no reliable date filter.
            params = {
                "FID_COND_MRKT_DIV_CODE": venue,
                "FID_INPUT_ISCD": symbol,
                "FID_PERIOD_DIV_CODE": "D",
                "FID_ORG_ADJ_PRC": "0",
            }
        else:
            path, tr_id = self.endpoints.foreign_daily, self.endpoints.foreign_tr_id
            params = {
                "AUTH": "",
                "EXCD": venue,
                "SYMB": symbol,
                "GUBN": "0",  # daily
                "BYMD": to_upstream_date(target_date) if target_date else "",
                "MODP": "0",
            }

        logger.debug("Requesting daily bars: %s on %s", symbol, venue)
        try:
            resp = self.client.get(path, credential=credential, tr_id=tr_id, params=params)
        except requests.RequestException as e:
            raise VenueUnavailable(venue, f"request error: {e}") from e

        if resp.status_code != 200:
            raise VenueUnavailable(venue, f"HTTP {resp.status_code}")
        if not resp.ok:
            raise VenueUnavailable(venue, f"rt_cd!=0 {resp.message}")

        js = resp.json
        if market is Market.DOMESTIC:
            bars = parse_bars(js.get("output"), DOMESTIC_SCHEMA)
            summary: Dict[str, Any] = {}
        else:
            bars = parse_bars(js.get("output2"), FOREIGN_SCHEMA)
            summary = js.get("output1") if isinstance(js.get("output1"), dict) else {}

        if not bars:
            raise VenueUnavailable(venue, "no daily bars")
        return BarSeries(venue=venue, bars=bars, summary=summary)
