import pytest
import requests

from conftest import FakeHTTP, FakeResponse, domestic_row, foreign_row, kis_fail, kis_ok, token_payload
from trade_journal.core.types import Currency, Market
from trade_journal.pricing.kis.auth import CredentialIssuer, CredentialManager
from trade_journal.pricing.kis.client import KISClient
from trade_journal.pricing.kis.credential_store import InMemoryCredentialStore
from trade_journal.pricing.kis.errors import CredentialIssueError, QuoteNotFound, VenueUnavailable
from trade_journal.pricing.kis.quotes import VenueQuoteFetcher
from trade_journal.pricing.resolver import QuoteResolver, ResolverConfig, first_success, select_bar

DOMESTIC_BARS = [
    domestic_row("20240117", "72000", change="-500", change_rate="-0.69"),
    domestic_row("20240116", "72500", change="-500", change_rate="-0.68"),
    domestic_row("20240115", "73000", change="200", change_rate="0.27"),
]


def build_resolver(settings, clock, handler, credential=None, deadline_sec=30.0):
    http = FakeHTTP(handler)
    store = InMemoryCredentialStore(credential)
    manager = CredentialManager(store, CredentialIssuer(settings, store, http=http, clock=clock), clock=clock)
    resolver = QuoteResolver(
        manager,
        VenueQuoteFetcher(KISClient(settings, http=http)),
        ResolverConfig(deadline_sec=deadline_sec),
        clock=clock,
    )
    return resolver, http


class TestDomestic:
    def test_exact_date_match(self, settings, clock, valid_credential):
        resolver, _ = build_resolver(settings, clock, lambda m, u, p: kis_ok(output=DOMESTIC_BARS), valid_credential)
        q = resolver.resolve("005930", "KR", "2024-01-15")
        assert q.date == "2024-01-15"
        assert q.price == 73000.0
        assert q.change == 200.0
        assert q.currency is Currency.KRW
        assert not q.is_date_fallback

    def test_missing_date_falls_back_to_first_bar(self, settings, clock, valid_credential):
        resolver, _ = build_resolver(settings, clock, lambda m, u, p: kis_ok(output=DOMESTIC_BARS), valid_credential)
        q = resolver.resolve("005930", Market.DOMESTIC, "2024-01-13")
        assert q.date == "2024-01-17"
        assert q.requested_date == "2024-01-13"
        assert q.is_date_fallback

    def test_no_date_uses_first_bar(self, settings, clock, valid_credential):
        resolver, _ = build_resolver(settings, clock, lambda m, u, p: kis_ok(output=DOMESTIC_BARS), valid_credential)
        assert resolver.resolve("005930", "domestic").date == "2024-01-17"

    def test_numeric_symbol_is_zero_padded(self, settings, clock, valid_credential):
        resolver, http = build_resolver(settings, clock, lambda m, u, p: kis_ok(output=DOMESTIC_BARS), valid_credential)
        assert resolver.resolve(" 5930 ", "KR").symbol == "005930"
        assert http.calls[0]["params"]["FID_INPUT_ISCD"] == "005930"

    @pytest.mark.parametrize("response", [kis_ok(output=[]), kis_fail(), FakeResponse(502, None, text="bad gateway")])
    def test_empty_or_failed_is_not_found(self, settings, clock, valid_credential, response):
        resolver, http = build_resolver(settings, clock, lambda m, u, p: response, valid_credential)
        assert resolver.resolve("005930", "KR", "2024-01-15") is None
        assert len(http.calls) == 1


class TestForeignProbe:
    def test_third_venue_wins_after_two_failures(self, settings, clock, valid_credential):
        def handler(m, u, p):
            if p["EXCD"] == "NAS":
                raise requests.ConnectionError("reset")
            if p["EXCD"] == "NYS":
                return kis_ok(output1={}, output2=[])
            return kis_ok(output1={"diff": "0.10", "rate": "0.25"}, output2=[foreign_row("20240112", "40.5")])

        resolver, http = build_resolver(settings, clock, handler, valid_credential)
        q = resolver.resolve("spy", "US")

        assert [c["params"]["EXCD"] for c in http.calls] == ["NAS", "NYS", "AMS"]
        assert q.venue == "AMS"
        assert q.symbol == "SPY"
        assert q.price == 40.5
        assert q.change == pytest.approx(0.10)
        assert q.currency is Currency.USD

    def test_first_success_short_circuits(self, settings, clock, valid_credential):
        resolver, http = build_resolver(
            settings, clock, lambda m, u, p: kis_ok(output1={}, output2=[foreign_row("20240112", "185.92")]), valid_credential
        )
        assert resolver.resolve("AAPL", "US").venue == "NAS"
        assert len(http.calls) == 1

    def test_all_venues_exhausted_is_not_found(self, settings, clock, valid_credential):
        resolver, http = build_resolver(settings, clock, lambda m, u, p: kis_fail(), valid_credential)
        with pytest.raises(QuoteNotFound) as ei:
            resolver.lookup("ZZZZ", "US", "2024-01-12")
        assert [f.venue for f in ei.value.failures] == ["NAS", "NYS", "AMS"]
        assert resolver.resolve("ZZZZ", "US", "2024-01-12") is None

    def test_deadline_skips_remaining_venues(self, settings, clock, valid_credential):
        def slow_fail(m, u, p):
            clock.advance(20)
            return FakeResponse(504, None, text="timeout")

        resolver, http = build_resolver(settings, clock, slow_fail, valid_credential, deadline_sec=30.0)
        with pytest.raises(QuoteNotFound) as ei:
            resolver.lookup("AAPL", "US")
        assert len(http.calls) == 2
        assert "deadline" in ei.value.failures[-1].reason

    def test_date_selection_on_foreign_bars(self, settings, clock, valid_credential):
        rows = [foreign_row("20240112", "10"), foreign_row("20240111", "11")]
        resolver, _ = build_resolver(settings, clock, lambda m, u, p: kis_ok(output1={}, output2=rows), valid_credential)
        assert resolver.resolve("AAPL", "US", "2024-01-11").price == 11.0
        assert resolver.resolve("AAPL", "US", "2023-06-01").date == "2024-01-12"


class TestCredentialInteraction:
    def test_issues_token_once_on_first_use(self, settings, clock):
        def handler(m, u, p):
            if u.endswith("/oauth2/tokenP"):
                return FakeResponse(200, token_payload("fresh"))
            return kis_ok(output=DOMESTIC_BARS)

        resolver, http = build_resolver(settings, clock, handler)
        resolver.resolve("005930", "KR")
        resolver.resolve("000660", "KR")
        assert len(http.calls_to("/oauth2/tokenP")) == 1
        assert http.calls[-1]["headers"]["authorization"] == "Bearer fresh"

    def test_issue_failure_propagates(self, settings, clock):
        resolver, _ = build_resolver(settings, clock, lambda m, u, p: FakeResponse(401, None, text="invalid appkey"))
        with pytest.raises(CredentialIssueError):
            resolver.resolve("005930", "KR")


def test_select_bar_reports_exactness():
    from trade_journal.pricing.kis.quotes import DOMESTIC_SCHEMA, parse_bars

    bars = parse_bars(DOMESTIC_BARS, DOMESTIC_SCHEMA)
    assert select_bar(bars, "2024-01-16") == (bars[1], True)
    assert select_bar(bars, "2024-01-01") == (bars[0], False)
    assert select_bar(bars, None) == (bars[0], True)


def test_first_success_collects_failures():
    def fail(name):
        def attempt():
            raise VenueUnavailable(name, "empty")

        return attempt

    result, failures = first_success([("a", fail("a")), ("b", lambda: 42), ("c", fail("c"))])
    assert result == 42
    assert [f.venue for f in failures] == ["a"]


def test_blank_symbol_rejected(settings, clock, valid_credential):
    resolver, _ = build_resolver(settings, clock, None, valid_credential)
    with pytest.raises(ValueError):
        resolver.resolve("   ", "KR")
