from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import requests

from trade_journal.core.types import Credential

from .credential_store import CredentialStore
from .errors import CredentialIssueError
from .settings import KISSettings

logger = logging.getLogger(__name__)


class CredentialIssuer:
    """Mints a new OAuth2 access token (client-credentials grant) and stores it."""

    def __init__(
        self,
        settings: KISSettings,
        store: CredentialStore,
        *,
        http: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.store = store
        self.http = http or requests.Session()
        self.clock = clock

    def issue(self) -> Credential:
        url = f"{self.settings.base_url}/oauth2/tokenP"
        payload = {
            "grant_type": "client_credentials",
            "appkey": self.settings.app_key,
            "appsecret": self.settings.app_secret,
        }
        try:
            resp = self.http.post(url, json=payload, timeout=self.settings.timeout_sec)
        except requests.RequestException as e:
            raise CredentialIssueError(f"KIS token issuance failed: {e}") from e
        if resp.status_code != 200:
            raise CredentialIssueError(f"KIS token issuance failed: {resp.status_code} {resp.text}")
        try:
            data = resp.json()
        except ValueError as e:
            raise CredentialIssueError(f"KIS token issuance returned non-JSON body: {resp.text[:200]}") from e
        if not isinstance(data, dict):
            raise CredentialIssueError(f"KIS token issuance returned unexpected payload: {data!r}")

        access_token = str(data.get("access_token", "") or "")
        token_type = str(data.get("token_type", "") or "Bearer")
        try:
            expires_in = float(data.get("expires_in", 0) or 0)
        except (TypeError, ValueError):
            expires_in = 0.0
        if not access_token:
            raise CredentialIssueError("KIS token issuance returned empty access_token")
        if expires_in <= 0:
            raise CredentialIssueError(f"KIS token issuance returned invalid expires_in: {data.get('expires_in')!r}")

        issued_at = self.clock()
        cred = Credential(
            access_token=access_token,
            token_type=token_type,
            expires_in=expires_in,
            issued_at_unix=issued_at,
            expires_at_unix=issued_at + expires_in,
        )
        self.store.replace(cred)
        logger.info("Issued new KIS access token (expires in %.0fs)", expires_in)
        return cred


class CredentialManager:
    """Serves a still-valid stored token, issuing a new one only on a miss.

    KIS throttles token issuance (and tokens live ~24h), so the stored token is
    always preferred. Two processes racing on a miss may both issue; the last
    write wins and both tokens stay usable until they expire.
    """

    def __init__(self, store: CredentialStore, issuer: CredentialIssuer, clock: Callable[[], float] = time.time):
        self.store = store
        self.issuer = issuer
        self.clock = clock

    def acquire(self) -> Credential:
        cached = self.store.load_valid(self.clock())
        if cached is not None:
            logger.debug("Reusing stored KIS access token")
            return cached
        logger.info("No valid KIS access token stored; issuing a new one")
        return self.issuer.issue()
