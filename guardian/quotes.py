"""
guardian/quotes.py  -  Quote providers, quote → Holding mapping, stock catalog

Two providers share one interface and one payload shape (brapi's):
  - BrapiClient : brapi.dev REST API (needs a token for most tickers)
  - YahooClient : yfinance, used when no brapi token is configured

map_quote() is the only place a provider payload becomes a Holding, and it
is where the valuation formulas and the score are applied.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional

import pandas as pd
import requests
import yfinance as yf

from guardian.calculators import graham_value, score_stock
from guardian.models import Holding

BRAPI_BASE_URL = "https://brapi.dev/api"
BRAPI_MODULES  = "defaultKeyStatistics,financialData"
FREE_TICKERS   = ("PETR4", "VALE3", "MGLU3", "ITUB4")   # usable without a token

HISTORY_INTERVALS = {"1d": "15m", "5d": "1h", "6mo": "1d"}
HISTORY_COLUMNS   = ["open", "high", "low", "close", "volume"]


class QuoteError(Exception):
    """A provider failure with a message fit to show the user."""


def normalize_ticker(ticker: str) -> str:
    return ticker.strip().upper()


def _num(value) -> float:
    """Provider numbers may be missing or null; both mean 0.0 here."""
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


# ── Mapping ───────────────────────────────────────────────────────────────────

def _rescore(h: Holding) -> Holding:
    breakdown = score_stock(
        price=h.price, graham=graham_value(h.lpa, h.vpa), roe=h.roe,
        debt_to_ebitda=h.debt_to_ebitda, dividend_yield=h.dividend_yield,
        pl=h.pl, ev_ebitda=h.ev_ebitda,
    )
    return replace(h, breakdown=breakdown)


def map_quote(quote: dict, existing: Optional[Holding] = None) -> Holding:
    """
    Build a fresh Holding from a brapi-shaped quote.

    The position (cost, quantity) and the favorite flag survive a refresh;
    everything else comes from the quote.
    """
    fin      = quote.get("financialData") or {}
    price    = _num(quote.get("regularMarketPrice"))
    lpa      = _num(quote.get("earningsPerShare"))
    vpa      = _num(quote.get("bookValue"))
    debt     = _num(fin.get("totalDebt"))
    ebitda   = _num(fin.get("ebitda"))
    ev       = _num(quote.get("enterpriseValue"))
    revenue  = _num(fin.get("totalRevenue"))

    holding = Holding(
        ticker=normalize_ticker(quote.get("symbol") or ""),
        name=quote.get("longName") or quote.get("shortName") or "",
        price=price,
        cost=existing.cost if existing else 0.0,
        quantity=existing.quantity if existing else 0.0,
        lpa=lpa,
        vpa=vpa,
        roe=_num(fin.get("returnOnEquity")),
        debt_to_ebitda=debt / ebitda if ebitda > 0 else 0.0,
        change=_num(quote.get("regularMarketChange")),
        change_percent=_num(quote.get("regularMarketChangePercent")),
        pl=_num(quote.get("priceEarnings")),
        pvp=price / vpa if vpa > 0 else 0.0,
        dividend_yield=_num(quote.get("dividendYield")),
        ev_ebitda=ev / ebitda if ebitda > 0 and ev > 0 else 0.0,
        net_margin=_num(fin.get("profitMargins")),
        ebitda_margin=ebitda / revenue if revenue > 0 and ebitda > 0 else 0.0,
        last_updated=datetime.now().isoformat(timespec="seconds"),
        is_favorite=existing.is_favorite if existing else False,
    )
    return _rescore(holding)


def apply_overrides(holding: Holding, lpa: Optional[float] = None,
                    vpa: Optional[float] = None) -> Holding:
    """Manual EPS / book value entered by the user; the score follows."""
    changes = {}
    if lpa is not None:
        changes["lpa"] = lpa
    if vpa is not None:
        changes["vpa"] = vpa
        changes["pvp"] = holding.price / vpa if vpa > 0 else 0.0
    if not changes:
        return holding
    return _rescore(replace(holding, **changes))


# ── brapi ─────────────────────────────────────────────────────────────────────

class BrapiClient:
    def __init__(self, token: Optional[str] = None, session=None, timeout: float = 10.0):
        self.token   = token or None
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, path: str, params: Optional[dict] = None):
        params = dict(params or {})
        if self.token:
            params["token"] = self.token
        try:
            return self.session.get(f"{BRAPI_BASE_URL}{path}", params=params,
                                    timeout=self.timeout)
        except requests.RequestException as e:
            raise QuoteError(f"Network error talking to brapi: {e}") from e

    def _check(self, response, ticker: str = "", what: str = "quote") -> dict:
        status = response.status_code
        if status == 404:
            raise QuoteError(f"Ticker \"{ticker}\" not found.")
        if status == 429:
            raise QuoteError("Request limit reached. Try again in a few minutes.")
        if status in (401, 403):
            raise QuoteError(f"A brapi token is required to fetch \"{ticker}\". "
                             f"Set one under API tokens.")
        if status != 200:
            raise QuoteError(f"Error fetching {what}: HTTP {status}")
        try:
            return response.json()
        except ValueError as e:
            raise QuoteError("Invalid response from brapi.") from e

    def fetch_quote(self, ticker: str) -> dict:
        ticker   = normalize_ticker(ticker)
        response = self._get(f"/quote/{ticker}", {"modules": BRAPI_MODULES})
        results  = self._check(response, ticker).get("results") or []
        if not results:
            if not self.token:
                raise QuoteError(
                    f"No result for \"{ticker}\". Without a token only "
                    f"{', '.join(FREE_TICKERS)} are available.")
            raise QuoteError(f"No result found for \"{ticker}\".")
        return results[0]

    def fetch_quotes(self, tickers: List[str]) -> List[dict]:
        if not tickers:
            return []
        joined   = ",".join(normalize_ticker(t) for t in tickers)
        response = self._get(f"/quote/{joined}", {"modules": BRAPI_MODULES})
        data     = self._check(response, joined, what="quotes")
        if "results" not in data:
            raise QuoteError("Invalid response from brapi.")
        return data["results"] or []

    def fetch_history(self, ticker: str, range_: str = "6mo") -> pd.DataFrame:
        ticker = normalize_ticker(ticker)
        if range_ not in HISTORY_INTERVALS:
            raise QuoteError(f"Unsupported range '{range_}'. "
                             f"Use one of: {', '.join(HISTORY_INTERVALS)}.")
        response = self._get(f"/quote/{ticker}",
                             {"range": range_, "interval": HISTORY_INTERVALS[range_]})
        results  = self._check(response, ticker, what="history").get("results") or []
        points   = results[0].get("historicalDataPrice") if results else None
        if not points:
            raise QuoteError(f"No price history found for \"{ticker}\".")
        df = pd.DataFrame(points)
        df.index = pd.to_datetime(df["date"], unit="s")
        return df[[c for c in HISTORY_COLUMNS if c in df.columns]]

    def fetch_available(self) -> List[str]:
        response = self._get("/available")
        return list(self._check(response, what="stock list").get("stocks") or [])


# ── Yahoo Finance ─────────────────────────────────────────────────────────────

def yahoo_symbol(ticker: str) -> str:
    """B3 tickers end in a digit (PETR4, BOVA11) and live under .SA on Yahoo."""
    t = normalize_ticker(ticker)
    if t and t[-1].isdigit() and "." not in t:
        return f"{t}.SA"
    return t


def _quote_from_info(ticker: str, info: dict) -> dict:
    """Reshape a yfinance info dict into the brapi payload map_quote expects."""
    price      = info.get("currentPrice") or info.get("regularMarketPrice")
    prev_close = _num(info.get("regularMarketPreviousClose") or info.get("previousClose"))
    change     = info.get("regularMarketChange")
    change_pct = info.get("regularMarketChangePercent")
    if change is None and price is not None and prev_close > 0:
        change     = _num(price) - prev_close
        change_pct = change / prev_close * 100
    return {
        "symbol":                     normalize_ticker(ticker),
        "shortName":                  info.get("shortName"),
        "longName":                   info.get("longName"),
        "regularMarketPrice":         price,
        "regularMarketChange":        change,
        "regularMarketChangePercent": change_pct,
        "earningsPerShare":           info.get("trailingEps"),
        "priceEarnings":              info.get("trailingPE"),
        "bookValue":                  info.get("bookValue"),
        "dividendYield":              info.get("trailingAnnualDividendYield"),
        "enterpriseValue":            info.get("enterpriseValue"),
        "financialData": {
            "returnOnEquity": info.get("returnOnEquity"),
            "totalDebt":      info.get("totalDebt"),
            "ebitda":         info.get("ebitda"),
            "profitMargins":  info.get("profitMargins"),
            "totalRevenue":   info.get("totalRevenue"),
        },
    }


class YahooClient:
    def fetch_quote(self, ticker: str) -> dict:
        ticker = normalize_ticker(ticker)
        try:
            info = yf.Ticker(yahoo_symbol(ticker)).info or {}
        except Exception as e:
            msg = str(e)
            if "rate" in msg.lower() or "too many" in msg.lower() or "429" in msg:
                raise QuoteError("Rate-limited by Yahoo Finance. Wait a while and try again.") from e
            raise QuoteError(f"Could not fetch {ticker}: {msg}") from e
        if not (info.get("currentPrice") or info.get("regularMarketPrice")):
            raise QuoteError(f"Ticker \"{ticker}\" not found.")
        return _quote_from_info(ticker, info)

    def fetch_quotes(self, tickers: List[str]) -> List[dict]:
        quotes = []
        for ticker in tickers:
            try:
                quotes.append(self.fetch_quote(ticker))
            except QuoteError as e:
                print(f"[Warning] {e}")
        return quotes

    def fetch_history(self, ticker: str, range_: str = "6mo") -> pd.DataFrame:
        if range_ not in HISTORY_INTERVALS:
            raise QuoteError(f"Unsupported range '{range_}'. "
                             f"Use one of: {', '.join(HISTORY_INTERVALS)}.")
        try:
            hist = yf.Ticker(yahoo_symbol(ticker)).history(
                period=range_, interval=HISTORY_INTERVALS[range_], auto_adjust=True)
        except Exception as e:
            raise QuoteError(f"Download error: {e}") from e
        if hist is None or hist.empty:
            raise QuoteError(f"No price history found for \"{normalize_ticker(ticker)}\".")
        hist.columns = [str(c).lower() for c in hist.columns]
        if hist.index.tz is not None:
            hist.index = hist.index.tz_localize(None)
        return hist[[c for c in HISTORY_COLUMNS if c in hist.columns]]

    def fetch_available(self) -> List[str]:
        raise QuoteError("Yahoo Finance does not publish a ticker list.")


# ── Stock catalog ─────────────────────────────────────────────────────────────

@dataclass
class StockOption:
    ticker: str
    label:  str
    market: str   # "BR", "US" or "CRYPTO"


INTERNATIONAL_STOCKS: List[StockOption] = [StockOption(t, label, m) for t, label, m in [
    # US - Tech
    ("AAPL", "Apple Inc.", "US"), ("MSFT", "Microsoft Corp.", "US"),
    ("GOOGL", "Alphabet (Google)", "US"), ("AMZN", "Amazon.com Inc.", "US"),
    ("META", "Meta Platforms", "US"), ("NVDA", "NVIDIA Corp.", "US"),
    ("TSLA", "Tesla Inc.", "US"), ("NFLX", "Netflix Inc.", "US"),
    ("AMD", "Advanced Micro Devices", "US"), ("INTC", "Intel Corp.", "US"),
    ("CRM", "Salesforce Inc.", "US"), ("ORCL", "Oracle Corp.", "US"),
    ("ADBE", "Adobe Inc.", "US"), ("CSCO", "Cisco Systems", "US"),
    ("AVGO", "Broadcom Inc.", "US"), ("QCOM", "Qualcomm Inc.", "US"),
    ("IBM", "IBM Corp.", "US"), ("UBER", "Uber Technologies", "US"),
    ("SHOP", "Shopify Inc.", "US"), ("PYPL", "PayPal Holdings", "US"),
    ("PLTR", "Palantir Technologies", "US"),
    # US - Finance
    ("JPM", "JPMorgan Chase", "US"), ("BAC", "Bank of America", "US"),
    ("GS", "Goldman Sachs", "US"), ("MS", "Morgan Stanley", "US"),
    ("V", "Visa Inc.", "US"), ("MA", "Mastercard Inc.", "US"),
    ("BRK-B", "Berkshire Hathaway B", "US"),
    # US - Healthcare / Consumer / Energy
    ("JNJ", "Johnson & Johnson", "US"), ("PFE", "Pfizer Inc.", "US"),
    ("UNH", "UnitedHealth Group", "US"), ("LLY", "Eli Lilly & Co.", "US"),
    ("KO", "Coca-Cola Co.", "US"), ("PEP", "PepsiCo Inc.", "US"),
    ("WMT", "Walmart Inc.", "US"), ("MCD", "McDonald's Corp.", "US"),
    ("DIS", "Walt Disney Co.", "US"), ("XOM", "Exxon Mobil", "US"),
    ("CVX", "Chevron Corp.", "US"),
    # US - ETFs
    ("SPY", "S&P 500 ETF", "US"), ("QQQ", "Nasdaq 100 ETF", "US"),
    ("VOO", "Vanguard S&P 500", "US"),
    # Crypto
    ("BTC", "Bitcoin", "CRYPTO"), ("ETH", "Ethereum", "CRYPTO"),
]]


class StockCatalog:
    """
    The list of tickers offered for lookup, fetched once per catalog.

    Build one at startup and hand it to whoever needs it; call reset() to
    force the next options() call to hit the provider again.
    """

    def __init__(self, client, fallback: Optional[List[StockOption]] = None):
        self._client   = client
        self._fallback = list(fallback if fallback is not None else INTERNATIONAL_STOCKS)
        self._options: Optional[List[StockOption]] = None

    def options(self) -> List[StockOption]:
        if self._options is not None:
            return self._options
        try:
            br = [StockOption(t, t, "BR") for t in self._client.fetch_available()]
        except QuoteError as e:
            print(f"[Warning] Stock list unavailable, using built-in list: {e}")
            self._options = list(self._fallback)
            return self._options
        seen = {o.ticker for o in br}
        self._options = br + [o for o in self._fallback if o.ticker not in seen]
        return self._options

    def search(self, query: str, limit: int = 10) -> List[StockOption]:
        q = query.strip().upper()
        if not q:
            return []
        starts   = [o for o in self.options() if o.ticker.startswith(q)]
        contains = [o for o in self.options()
                    if o not in starts and (q in o.ticker or q in o.label.upper())]
        return (starts + contains)[:limit]

    def reset(self) -> None:
        self._options = None
