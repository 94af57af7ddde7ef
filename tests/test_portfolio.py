"""Tests for the portfolio service and the auto refresher."""

import pytest

from guardian.db import TOKEN_KEY, Database
from guardian.portfolio import Portfolio, Refresher, brapi_token, make_client
from guardian.quotes import BrapiClient, QuoteError, YahooClient


def _quote(ticker, price, lpa=2.0, vpa=10.0, change_percent=1.0):
    return {"symbol": ticker, "regularMarketPrice": price, "earningsPerShare": lpa,
            "bookValue": vpa, "regularMarketChangePercent": change_percent,
            "financialData": {"returnOnEquity": 0.18}}


class FakeClient:
    """In-memory provider; quotes can be changed between calls."""

    def __init__(self, quotes):
        self.quotes = dict(quotes)
        self.fail   = False

    def fetch_quote(self, ticker):
        ticker = ticker.strip().upper()
        if ticker not in self.quotes:
            raise QuoteError(f"Ticker \"{ticker}\" not found.")
        return self.quotes[ticker]

    def fetch_quotes(self, tickers):
        if self.fail:
            raise QuoteError("service down")
        return [self.quotes[t] for t in tickers if t in self.quotes]


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "guardian.db"), backup_file=str(tmp_path / "backup.json"))
    yield database
    database.close()


@pytest.fixture
def client():
    return FakeClient({"PETR4": _quote("PETR4", 36.0), "VALE3": _quote("VALE3", 60.0),
                       "ITUB4": _quote("ITUB4", 30.0)})


@pytest.fixture
def portfolio(db, client):
    return Portfolio(db, client)


class TestAddStock:
    def test_adds_watch_only(self, portfolio):
        h = portfolio.add_stock("petr4")
        assert h.ticker == "PETR4"
        assert h.has_position is False
        assert h.score == h.breakdown.total

    def test_adds_position(self, portfolio):
        h = portfolio.add_stock("VALE3", cost=50.0, quantity=10)
        assert (h.cost, h.quantity) == (50.0, 10)

    def test_persisted_and_backed_up(self, portfolio, db, tmp_path):
        portfolio.add_stock("PETR4", cost=30.0, quantity=100)
        assert db.get_holding("PETR4").cost == 30.0
        assert (tmp_path / "backup.json").exists()

    def test_readding_keeps_position(self, portfolio):
        portfolio.add_stock("PETR4", cost=30.0, quantity=100)
        h = portfolio.add_stock("PETR4")
        assert (h.cost, h.quantity) == (30.0, 100)

    def test_overrides_applied(self, portfolio):
        h = portfolio.add_stock("PETR4", lpa=-1.0)
        assert h.lpa == -1.0
        assert h.breakdown.price_score == 0

    def test_unknown_ticker(self, portfolio):
        with pytest.raises(QuoteError):
            portfolio.add_stock("ZZZZ3")
        assert portfolio.all_holdings() == []


class TestRefresh:
    def test_refresh_all_keeps_position(self, portfolio, client):
        portfolio.add_stock("PETR4", cost=30.0, quantity=100)
        client.quotes["PETR4"] = _quote("PETR4", 40.0)
        assert portfolio.refresh_all() == []
        h = portfolio.get("PETR4")
        assert h.price == 40.0
        assert (h.cost, h.quantity) == (30.0, 100)

    def test_missing_tickers_reported_and_kept(self, portfolio, client):
        portfolio.add_stock("PETR4")
        portfolio.add_stock("VALE3")
        del client.quotes["VALE3"]
        assert portfolio.refresh_all() == ["VALE3"]
        assert portfolio.get("VALE3").price == 60.0

    def test_refresh_all_empty(self, portfolio):
        assert portfolio.refresh_all() == []

    def test_refresh_stock(self, portfolio, client):
        portfolio.add_stock("ITUB4", cost=25.0, quantity=10)
        client.quotes["ITUB4"] = _quote("ITUB4", 33.0)
        assert portfolio.refresh_stock("itub4").price == 33.0

    def test_refresh_unknown_stock(self, portfolio):
        with pytest.raises(KeyError):
            portfolio.refresh_stock("PETR4")


class TestEdits:
    def test_update_position(self, portfolio):
        portfolio.add_stock("PETR4")
        assert portfolio.update_position("PETR4", 30.0, 5) is True
        assert portfolio.get("PETR4").invested == pytest.approx(150.0)
        assert portfolio.update_position("NOPE3", 1.0, 1) is False

    def test_favorites_sort_first(self, portfolio):
        for t in ("PETR4", "VALE3", "ITUB4"):
            portfolio.add_stock(t)
        assert portfolio.toggle_favorite("VALE3") is True
        assert [h.ticker for h in portfolio.all_holdings()] == ["VALE3", "ITUB4", "PETR4"]
        portfolio.toggle_favorite("VALE3")
        assert [h.ticker for h in portfolio.all_holdings()] == ["ITUB4", "PETR4", "VALE3"]

    def test_favorite_survives_refresh(self, portfolio):
        portfolio.add_stock("PETR4")
        portfolio.toggle_favorite("PETR4")
        portfolio.refresh_all()
        assert portfolio.get("PETR4").is_favorite is True

    def test_remove(self, portfolio, db):
        portfolio.add_stock("PETR4")
        assert portfolio.remove("petr4") is True
        assert portfolio.remove("PETR4") is False
        assert db.holding_count() == 0

    def test_reload_from_database(self, portfolio, db, client):
        portfolio.add_stock("PETR4", cost=30.0, quantity=100)
        again = Portfolio(db, client)
        assert again.get("PETR4").quantity == 100

    def test_snapshot(self, portfolio):
        portfolio.add_stock("PETR4", cost=30.0, quantity=100)
        portfolio.add_stock("VALE3")
        snap = portfolio.snapshot()
        assert snap.position_count == 1
        assert snap.total_invested == pytest.approx(3000.0)
        assert snap.total_current == pytest.approx(3600.0)


class TestClientSelection:
    def test_yahoo_without_token(self, db, monkeypatch):
        monkeypatch.delenv("BRAPI_TOKEN", raising=False)
        assert isinstance(make_client(db), YahooClient)

    def test_brapi_with_stored_token(self, db, monkeypatch):
        monkeypatch.delenv("BRAPI_TOKEN", raising=False)
        db.set_setting(TOKEN_KEY, "stored")
        client = make_client(db)
        assert isinstance(client, BrapiClient)
        assert client.token == "stored"

    def test_environment_wins(self, db, monkeypatch):
        monkeypatch.setenv("BRAPI_TOKEN", "from-env")
        db.set_setting(TOKEN_KEY, "stored")
        assert brapi_token(db) == "from-env"


class TestRefresher:
    def test_runs_requested_ticks(self, portfolio):
        portfolio.add_stock("PETR4", cost=30.0, quantity=1)
        sleeps, snaps = [], []
        done = Refresher(portfolio, interval=5).run(snaps.append, iterations=3, sleep=sleeps.append)
        assert done == 3
        assert len(snaps) == 3
        assert sleeps == [5, 5]

    def test_provider_failure_keeps_running(self, portfolio, client, capsys):
        portfolio.add_stock("PETR4", cost=30.0, quantity=1)
        client.fail = True
        snap = Refresher(portfolio).tick()
        assert snap.position_count == 1
        assert "[Warning] Refresh failed" in capsys.readouterr().out

    def test_keyboard_interrupt_stops(self, portfolio):
        def interrupt(_):
            raise KeyboardInterrupt

        done = Refresher(portfolio).run(lambda snap: None, sleep=interrupt)
        assert done == 1
