from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from trade_journal.core.types import Credential

from .settings import KISSettings


@dataclass
class KISResponse:
    status_code: int
    json: Any
    text: str

    @property
    def ok(self) -> bool:
        """HTTP 200 and KIS return code ``rt_cd == "0"``."""
        return self.status_code == 200 and isinstance(self.json, dict) and str(self.json.get("rt_cd", "")) == "0"

    @property
    def message(self) -> str:
        if isinstance(self.json, dict) and self.json.get("msg1"):
            return str(self.json["msg1"]).strip()
        return self.text[:200]


class KISClient:
    """Thin REST client for KIS OpenAPI quotation endpoints.

    - Adds the caller-supplied bearer token
    - Adds appkey/appsecret and tr_id headers
    """

    def __init__(self, settings: KISSettings, http: Optional[requests.Session] = None):
        self.settings = settings
        self.http = http or requests.Session()

    def _auth_headers(self, credential: Credential) -> Dict[str, str]:
        return {
            "content-type": "application/json",
            "authorization": credential.authorization,
            "appkey": self.settings.app_key,
            "appsecret": self.settings.app_secret,
        }

    def get(
        self,
        path: str,
        *,
        credential: Credential,
        tr_id: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> KISResponse:
        """Issue a GET; transport errors (``requests.RequestException``) propagate."""
        url = f"{self.settings.base_url}{path}"
        headers = self._auth_headers(credential) | {"tr_id": tr_id}
        resp = self.http.request("GET", url, headers=headers, params=params, timeout=self.settings.timeout_sec)

        try:
            js = resp.json()
        except ValueError:
            js = None

        return KISResponse(
            status_code=int(resp.status_code),
            json=js,
            text=resp.text,
        )
