"""Tests for quote mapping, the brapi and Yahoo clients, and the stock catalog."""

from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
import requests

from guardian.models import Holding
from guardian.quotes import (
    BRAPI_BASE_URL, BrapiClient, QuoteError, StockCatalog, StockOption,
    YahooClient, apply_overrides, map_quote, normalize_ticker, yahoo_symbol,
)


def _response(status=200, payload=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload if payload is not None else {}
    return response


def _session(*responses):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return session


class TestMapQuote:
    def test_derived_ratios(self, brapi_quote):
        h = map_quote(brapi_quote)
        assert h.ticker == "PETR4"
        assert h.name == "Petróleo Brasileiro S.A. - Petrobras"
        assert h.price == 36.0
        assert h.pvp == pytest.approx(36.0 / 32.0)
        assert h.debt_to_ebitda == pytest.approx(1.0)
        assert h.ev_ebitda == pytest.approx(3.0)
        assert h.ebitda_margin == pytest.approx(0.4)
        assert h.roe == 0.25
        assert h.last_updated

    def test_scores_from_fundamentals(self, brapi_quote):
        h = map_quote(brapi_quote)
        assert h.score == 100
        assert h.breakdown.price_score == 25

    def test_missing_fields_default_to_zero(self):
        h = map_quote({"symbol": "abcd3", "regularMarketPrice": 12.5,
                       "earningsPerShare": None, "financialData": None})
        assert h.ticker == "ABCD3"
        assert h.lpa == 0
        assert h.debt_to_ebitda == 0
        assert h.ev_ebitda == 0
        assert h.pvp == 0
        assert h.breakdown.price_score == 0

    def test_position_survives_refresh(self, brapi_quote):
        existing = Holding(ticker="PETR4", price=20.0, cost=30.0, quantity=100, is_favorite=True)
        h = map_quote(brapi_quote, existing)
        assert (h.cost, h.quantity, h.is_favorite) == (30.0, 100, True)
        assert h.price == 36.0

    def test_non_numeric_values_are_zero(self, brapi_quote):
        brapi_quote["dividendYield"] = "n/a"
        assert map_quote(brapi_quote).dividend_yield == 0


class TestApplyOverrides:
    def test_overrides_rescore(self, brapi_quote):
        h = map_quote(brapi_quote)
        lossy = apply_overrides(h, lpa=-1.0)
        assert lossy.lpa == -1.0
        assert lossy.breakdown.price_score == 0
        assert lossy.score == h.score - 25

    def test_vpa_updates_pvp(self, brapi_quote):
        h = apply_overrides(map_quote(brapi_quote), vpa=18.0)
        assert h.pvp == pytest.approx(2.0)

    def test_no_overrides_returns_same_holding(self, brapi_quote):
        h = map_quote(brapi_quote)
        assert apply_overrides(h) is h

    def test_input_not_modified(self, brapi_quote):
        h = map_quote(brapi_quote)
        apply_overrides(h, lpa=1.0, vpa=1.0)
        assert h.lpa == 8.0
        assert h.vpa == 32.0


class TestBrapiClient:
    def test_fetch_quote(self, brapi_quote):
        session = _session(_response(200, {"results": [brapi_quote]}))
        client = BrapiClient(token="secret", session=session)
        assert client.fetch_quote(" petr4 ") == brapi_quote
        args, kwargs = session.get.call_args
        assert args[0] == f"{BRAPI_BASE_URL}/quote/PETR4"
        assert kwargs["params"]["token"] == "secret"

    def test_no_token_param_without_token(self, brapi_quote):
        session = _session(_response(200, {"results": [brapi_quote]}))
        BrapiClient(session=session).fetch_quote("PETR4")
        assert "token" not in session.get.call_args[1]["params"]

    @pytest.mark.parametrize("status,fragment", [
        (404, "not found"), (429, "limit"), (401, "token"), (403, "token"), (500, "HTTP 500"),
    ])
    def test_http_errors(self, status, fragment):
        client = BrapiClient(session=_session(_response(status)))
        with pytest.raises(QuoteError, match=fragment):
            client.fetch_quote("XXXX3")

    def test_empty_results_without_token_mentions_free_tickers(self):
        client = BrapiClient(session=_session(_response(200, {"results": []})))
        with pytest.raises(QuoteError, match="VALE3"):
            client.fetch_quote("WEGE3")

    def test_empty_results_with_token(self):
        client = BrapiClient(token="t", session=_session(_response(200, {"results": []})))
        with pytest.raises(QuoteError, match="No result found"):
            client.fetch_quote("WEGE3")

    def test_network_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("boom")
        with pytest.raises(QuoteError, match="Network error"):
            BrapiClient(session=session).fetch_quote("PETR4")

    def test_invalid_json(self):
        response = _response(200)
        response.json.side_effect = ValueError("bad json")
        with pytest.raises(QuoteError, match="Invalid response"):
            BrapiClient(session=_session(response)).fetch_quote("PETR4")

    def test_fetch_quotes_batches(self, brapi_quote):
        session = _session(_response(200, {"results": [brapi_quote, brapi_quote]}))
        quotes = BrapiClient(session=session).fetch_quotes(["petr4", "vale3"])
        assert len(quotes) == 2
        assert session.get.call_args[0][0].endswith("/quote/PETR4,VALE3")

    def test_fetch_quotes_empty_does_not_call(self):
        session = MagicMock()
        assert BrapiClient(session=session).fetch_quotes([]) == []
        session.get.assert_not_called()

    def test_fetch_history(self):
        points = [
            {"date": 1700000000, "open": 1, "high": 2, "low": 0.5, "close": 1.5, "volume": 100},
            {"date": 1700086400, "open": 1.5, "high": 2.5, "low": 1, "close": 2, "volume": 200},
        ]
        session = _session(_response(200, {"results": [{"historicalDataPrice": points}]}))
        df = BrapiClient(session=session).fetch_history("PETR4", "6mo")
        assert list(df.columns) == ["open", "high", "low", "close", "volume"]
        assert len(df) == 2
        assert df.index[0] == pd.Timestamp(1700000000, unit="s")
        assert session.get.call_args[1]["params"]["interval"] == "1d"

    def test_fetch_history_rejects_unknown_range(self):
        with pytest.raises(QuoteError, match="Unsupported range"):
            BrapiClient(session=MagicMock()).fetch_history("PETR4", "10y")

    def test_fetch_history_without_points(self):
        session = _session(_response(200, {"results": [{}]}))
        with pytest.raises(QuoteError, match="No price history"):
            BrapiClient(session=session).fetch_history("PETR4")

    def test_fetch_available(self):
        session = _session(_response(200, {"stocks": ["PETR4", "VALE3"]}))
        assert BrapiClient(session=session).fetch_available() == ["PETR4", "VALE3"]


class TestYahoo:
    @pytest.mark.parametrize("raw,symbol", [
        ("PETR4", "PETR4.SA"), ("bova11", "BOVA11.SA"), ("AAPL", "AAPL"),
        ("PETR4.SA", "PETR4.SA"), ("^BVSP", "^BVSP"),
    ])
    def test_yahoo_symbol(self, raw, symbol):
        assert yahoo_symbol(raw) == symbol

    def test_normalize_ticker(self):
        assert normalize_ticker("  itub4 ") == "ITUB4"

    def test_fetch_quote_reshapes_info(self):
        info = {
            "currentPrice": 40.0, "regularMarketPreviousClose": 38.0,
            "longName": "Itau Unibanco", "trailingEps": 4.0, "bookValue": 20.0,
            "trailingPE": 10.0, "trailingAnnualDividendYield": 0.05,
            "returnOnEquity": 0.2, "totalDebt": 100.0, "ebitda": 50.0,
        }
        with patch("guardian.quotes.yf.Ticker") as ticker:
            ticker.return_value.info = info
            quote = YahooClient().fetch_quote("itub4")
        ticker.assert_called_once_with("ITUB4.SA")
        assert quote["symbol"] == "ITUB4"
        assert quote["regularMarketChange"] == pytest.approx(2.0)
        assert quote["regularMarketChangePercent"] == pytest.approx(2.0 / 38.0 * 100)

        h = map_quote(quote)
        assert h.lpa == 4.0
        assert h.debt_to_ebitda == pytest.approx(2.0)
        assert h.dividend_yield == 0.05

    def test_fetch_quote_unknown_ticker(self):
        with patch("guardian.quotes.yf.Ticker") as ticker:
            ticker.return_value.info = {}
            with pytest.raises(QuoteError, match="not found"):
                YahooClient().fetch_quote("ZZZZ3")

    def test_fetch_quote_rate_limited(self):
        with patch("guardian.quotes.yf.Ticker", side_effect=RuntimeError("Too Many Requests")):
            with pytest.raises(QuoteError, match="Rate-limited"):
                YahooClient().fetch_quote("PETR4")

    def test_fetch_quotes_skips_failures(self, capsys):
        client = YahooClient()
        with patch.object(client, "fetch_quote",
                          side_effect=[{"symbol": "PETR4"}, QuoteError("nope")]):
            quotes = client.fetch_quotes(["PETR4", "XXXX3"])
        assert quotes == [{"symbol": "PETR4"}]
        assert "[Warning] nope" in capsys.readouterr().out

    def test_fetch_available_unsupported(self):
        with pytest.raises(QuoteError):
            YahooClient().fetch_available()


class TestStockCatalog:
    FALLBACK = [StockOption("AAPL", "Apple Inc.", "US"), StockOption("PETR4", "dup", "BR")]

    def test_brazilian_first_and_deduplicated(self):
        client = MagicMock()
        client.fetch_available.return_value = ["PETR4", "VALE3"]
        options = StockCatalog(client, self.FALLBACK).options()
        assert [o.ticker for o in options] == ["PETR4", "VALE3", "AAPL"]
        assert options[0].market == "BR"

    def test_memoized_until_reset(self):
        client = MagicMock()
        client.fetch_available.return_value = ["PETR4"]
        catalog = StockCatalog(client, self.FALLBACK)
        catalog.options()
        catalog.options()
        assert client.fetch_available.call_count == 1
        catalog.reset()
        catalog.options()
        assert client.fetch_available.call_count == 2

    def test_falls_back_on_provider_error(self, capsys):
        client = MagicMock()
        client.fetch_available.side_effect = QuoteError("down")
        options = StockCatalog(client, self.FALLBACK).options()
        assert options == self.FALLBACK
        assert "[Warning]" in capsys.readouterr().out

    def test_search_prefers_prefix_matches(self):
        client = MagicMock()
        client.fetch_available.return_value = ["PETR4", "VALE3", "APET3"]
        catalog = StockCatalog(client, [StockOption("AAPL", "Apple Inc.", "US")])
        assert [o.ticker for o in catalog.search("pet")] == ["PETR4", "APET3"]
        assert [o.ticker for o in catalog.search("apple")] == ["AAPL"]
        assert catalog.search("   ") == []

    def test_search_limit(self):
        client = MagicMock()
        client.fetch_available.return_value = [f"ABC{i}" for i in range(20)]
        assert len(StockCatalog(client, []).search("ABC", limit=5)) == 5
