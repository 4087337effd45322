from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Tuple

REAL_BASE_URL = "https://openapi.koreainvestment.com:9443"
VIRTUAL_BASE_URL = "https://openapivts.koreainvestment.com:29443"


@dataclass(frozen=True)
class KISSettings:
    """Runtime configuration for the KIS OpenAPI pricing gateway.

    Values are loaded from environment variables to avoid committing secrets.
    """

    app_key: str
    app_secret: str
    base_url: str = REAL_BASE_URL

    token_db_path: str = "./.cache/kis_token.sqlite3"
    timeout_sec: float = 10.0
    resolve_deadline_sec: float = 30.0

    # Probe order for foreign tickers: NASDAQ, NYSE, AMEX.
    foreign_venues: Tuple[str, ...] = ("NAS", "NYS", "AMS")

    @staticmethod
    def from_env(prefix: str = "KIS_") -> "KISSettings":
        def req(name: str) -> str:
            v = os.getenv(prefix + name)
            if not v:
                raise RuntimeError(f"Missing env var: {prefix}{name}")
            return v

        virtual = os.getenv(prefix + "VIRTUAL", "").strip().lower() in {"1", "true", "yes", "y"}
        base_url = os.getenv(prefix + "BASE_URL") or (VIRTUAL_BASE_URL if virtual else REAL_BASE_URL)

        venues = os.getenv(prefix + "FOREIGN_VENUES", "")
        foreign_venues = tuple(v.strip().upper() for v in venues.split(",") if v.strip()) or ("NAS", "NYS", "AMS")

        return KISSettings(
            app_key=req("APP_KEY"),
            app_secret=req("APP_SECRET"),
            base_url=base_url.rstrip("/"),
            token_db_path=os.getenv(prefix + "TOKEN_DB", "./.cache/kis_token.sqlite3"),
            timeout_sec=float(os.getenv(prefix + "TIMEOUT_SEC", "10")),
            resolve_deadline_sec=float(os.getenv(prefix + "RESOLVE_DEADLINE_SEC", "30")),
            foreign_venues=foreign_venues,
        )
