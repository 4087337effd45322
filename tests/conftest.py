"""Shared fakes: HTTP session, clock and canned KIS payloads. No network."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from trade_journal.core.types import Credential
from trade_journal.pricing.kis.settings import KISSettings

BASE_URL = "https://kis.test"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, sec: float) -> None:
        self.now += sec


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeHTTP:
    """Stands in for requests.Session; ``handler(method, url, params)`` returns a FakeResponse or raises."""

    def __init__(self, handler: Optional[Callable[..., FakeResponse]] = None):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def _dispatch(self, method: str, url: str, **kw) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kw})
        if self.handler is None:
            raise AssertionError(f"unexpected HTTP call: {method} {url}")
        return self.handler(method, url, kw.get("params") or {})

    def post(self, url: str, **kw) -> FakeResponse:
        return self._dispatch("POST", url, **kw)

    def request(self, method: str, url: str, **kw) -> FakeResponse:
        return self._dispatch(method, url, **kw)

    def calls_to(self, fragment: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if fragment in c["url"]]


def token_payload(token: str = "tok-new", expires_in: int = 86400) -> Dict[str, Any]:
    return {"access_token": token, "token_type": "Bearer", "expires_in": expires_in}


def domestic_row(date: str, close: str, **kw: str) -> Dict[str, str]:
    row = {
        "stck_bsop_date": date,
        "stck_clpr": close,
        "stck_oprc": kw.get("open", close),
        "stck_hgpr": kw.get("high", close),
        "stck_lwpr": kw.get("low", close),
        "acml_vol": kw.get("volume", "1000"),
        "acml_tr_pbmn": kw.get("amount", "0"),
        "prdy_vrss": kw.get("change", "0"),
        "prdy_ctrt": kw.get("change_rate", "0.00"),
    }
    return row


def foreign_row(date: str, close: str, **kw: str) -> Dict[str, str]:
    return {
        "xymd": date,
        "clos": close,
        "open": kw.get("open", close),
        "high": kw.get("high", close),
        "low": kw.get("low", close),
        "tvol": kw.get("volume", "500"),
        "tamt": kw.get("amount", "0"),
    }


def kis_ok(**outputs: Any) -> FakeResponse:
    return FakeResponse(200, {"rt_cd": "0", "msg_cd": "MCA00000", "msg1": "정상처리 되었습니다.", **outputs})


def kis_fail(msg: str = "조회할 자료가 없습니다") -> FakeResponse:
    return FakeResponse(200, {"rt_cd": "1", "msg_cd": "EGW00000", "msg1": msg})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> KISSettings:
    return KISSettings(app_key="app-key", app_secret="app-secret", base_url=BASE_URL)


@pytest.fixture
def valid_credential(clock: FakeClock) -> Credential:
    return Credential(
        access_token="tok-stored",
        token_type="Bearer",
        expires_in=86400,
        issued_at_unix=clock.now - 3600,
        expires_at_unix=clock.now + 82800,
    )
