"""
guardian/portfolio.py  -  Portfolio service and auto refresh

Portfolio keeps an in-memory dict of holdings that is re-read from the
database after every write. Every quote refresh builds new Holding records
through map_quote(); the user's cost, quantity and favorite flag are carried
over and everything else is replaced.
"""

import os
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from guardian.analysis import summarize
from guardian.db import GROQ_KEY, TOKEN_KEY, Database
from guardian.models import Holding, PortfolioSnapshot
from guardian.quotes import (
    BrapiClient, QuoteError, YahooClient, apply_overrides, map_quote,
    normalize_ticker,
)

POLL_INTERVAL = 60   # seconds between automatic refreshes


def brapi_token(db: Database) -> str:
    return os.environ.get("BRAPI_TOKEN") or db.get_setting(TOKEN_KEY, "") or ""


def groq_key(db: Database) -> str:
    return os.environ.get("GROQ_API_KEY") or db.get_setting(GROQ_KEY, "") or ""


def make_client(db: Database):
    """brapi when a token is configured, Yahoo Finance otherwise."""
    token = brapi_token(db)
    return BrapiClient(token=token) if token else YahooClient()


class Portfolio:
    def __init__(self, db: Database, client):
        self._db      = db
        self.client   = client
        self.holdings: Dict[str, Holding] = {}
        self._load()

    def _load(self) -> None:
        self.holdings = self._db.get_all_holdings()

    def _commit(self, holdings: List[Holding]) -> None:
        self._db.save_holdings(holdings)
        self._db.export_json_backup()
        self._load()

    # ── Queries ───────────────────────────────────────────────────────────────

    def get(self, ticker: str) -> Optional[Holding]:
        return self.holdings.get(normalize_ticker(ticker))

    def all_holdings(self) -> List[Holding]:
        """Favorites first, then alphabetical."""
        return sorted(self.holdings.values(),
                      key=lambda h: (not h.is_favorite, h.ticker))

    def snapshot(self) -> PortfolioSnapshot:
        return summarize(self.all_holdings())

    # ── Holdings CRUD ─────────────────────────────────────────────────────────

    def add_stock(self, ticker: str, cost: float = 0.0, quantity: float = 0.0,
                  lpa: Optional[float] = None, vpa: Optional[float] = None) -> Holding:
        """
        Look up a ticker and add it (or refresh it if already tracked).
        A zero cost or quantity keeps the existing position. Raises QuoteError.
        """
        existing = self.get(ticker)
        holding  = apply_overrides(map_quote(self.client.fetch_quote(ticker), existing),
                                   lpa=lpa, vpa=vpa)
        holding  = replace(
            holding,
            cost=cost or (existing.cost if existing else 0.0),
            quantity=quantity or (existing.quantity if existing else 0.0),
        )
        self._commit([holding])
        return self.holdings[holding.ticker]

    def refresh_stock(self, ticker: str) -> Holding:
        ticker   = normalize_ticker(ticker)
        existing = self.holdings.get(ticker)
        if existing is None:
            raise KeyError(ticker)
        holding = map_quote(self.client.fetch_quote(ticker), existing)
        self._commit([replace(holding, ticker=ticker)])
        return self.holdings[ticker]

    def refresh_all(self) -> List[str]:
        """
        Refresh every holding in one batch. Tickers missing from the reply
        keep their previous record and are returned. Raises QuoteError when
        the batch itself fails.
        """
        if not self.holdings:
            return []
        quotes  = {normalize_ticker(q.get("symbol") or ""): q
                   for q in self.client.fetch_quotes(list(self.holdings))}
        updated = [map_quote(quotes[t], h) for t, h in self.holdings.items() if t in quotes]
        if updated:
            self._commit(updated)
        return [t for t in self.holdings if t not in quotes]

    def update_position(self, ticker: str, cost: float, quantity: float) -> bool:
        h = self.get(ticker)
        if h is None:
            return False
        self._commit([replace(h, cost=cost, quantity=quantity)])
        return True

    def toggle_favorite(self, ticker: str) -> bool:
        h = self.get(ticker)
        if h is None:
            return False
        self._commit([replace(h, is_favorite=not h.is_favorite)])
        return True

    def remove(self, ticker: str) -> bool:
        removed = self._db.delete_holding(normalize_ticker(ticker))
        if removed:
            self._db.export_json_backup()
            self._load()
        return removed


class Refresher:
    """
    Periodically refreshes quotes and hands back a fresh snapshot.
    Stopping is just a matter of no longer calling tick() / leaving run().
    """

    def __init__(self, portfolio: Portfolio, interval: float = POLL_INTERVAL):
        self.portfolio = portfolio
        self.interval  = interval

    def tick(self) -> PortfolioSnapshot:
        try:
            failed = self.portfolio.refresh_all()
            if failed:
                print(f"[Warning] No quote returned for: {', '.join(failed)}")
        except QuoteError as e:
            print(f"[Warning] Refresh failed: {e}")
        return self.portfolio.snapshot()

    def run(self, on_tick: Callable[[PortfolioSnapshot], None],
            iterations: Optional[int] = None,
            sleep: Callable[[float], None] = time.sleep) -> int:
        """Refresh until interrupted (Ctrl+C) or `iterations` ticks are done."""
        done = 0
        try:
            while iterations is None or done < iterations:
                on_tick(self.tick())
                done += 1
                if iterations is None or done < iterations:
                    sleep(self.interval)
        except KeyboardInterrupt:
            pass
        return done
