from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional

import requests

from trade_journal.pricing.cache import ClientQuoteCache
from trade_journal.pricing.enrichment import EnrichmentCalculator, TradeEnricher
from trade_journal.pricing.kis.auth import CredentialIssuer, CredentialManager
from trade_journal.pricing.kis.client import KISClient
from trade_journal.pricing.kis.credential_store import CredentialStore, SQLiteCredentialStore
from trade_journal.pricing.kis.errors import KISError
from trade_journal.pricing.kis.quotes import QuoteEndpoints, VenueQuoteFetcher
from trade_journal.pricing.kis.settings import KISSettings
from trade_journal.pricing.resolver import QuoteResolver, ResolverConfig

logger = logging.getLogger(__name__)


class PricingGateway:
    """Explicitly wired pricing stack: credentials -> resolver -> cache/enricher.

    Construct one per process (or per test) instead of relying on a module
    global; every collaborator can be swapped through the constructor.
    """

    def __init__(
        self,
        settings: KISSettings,
        *,
        store: Optional[CredentialStore] = None,
        http: Optional[requests.Session] = None,
        endpoints: Optional[QuoteEndpoints] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        http = http or requests.Session()
        self.store = store if store is not None else SQLiteCredentialStore(settings.token_db_path)
        self.issuer = CredentialIssuer(settings, self.store, http=http, clock=clock)
        self.credentials = CredentialManager(self.store, self.issuer, clock=clock)
        self.client = KISClient(settings, http=http)
        self.fetcher = VenueQuoteFetcher(self.client, endpoints)
        self.resolver = QuoteResolver(
            self.credentials,
            self.fetcher,
            ResolverConfig(
                domestic_venues=(self.fetcher.endpoints.domestic_market_code,),
                foreign_venues=tuple(settings.foreign_venues),
                deadline_sec=settings.resolve_deadline_sec,
            ),
            clock=clock,
        )
        self.cache = ClientQuoteCache.from_resolver(self.resolver, clock=clock)
        self.enricher = TradeEnricher(self.resolver, EnrichmentCalculator())

    @classmethod
    def from_env(cls, prefix: str = "KIS_", **kwargs) -> "PricingGateway":
        return cls(KISSettings.from_env(prefix), **kwargs)

    def check_api_status(self) -> Dict[str, bool]:
        try:
            ok = bool(self.credentials.acquire().access_token)
        except KISError as e:
            logger.error("KIS API status check failed: %s", e)
            ok = False
        return {"domestic": ok, "overseas": ok}
