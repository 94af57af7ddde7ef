"""Pytest configuration and fixtures."""

import pytest

from guardian.calculators import graham_value, score_stock
from guardian.models import Holding


def _make_holding(ticker="PETR4", **fields) -> Holding:
    h = Holding(ticker=ticker, **fields)
    h.breakdown = score_stock(
        price=h.price, graham=graham_value(h.lpa, h.vpa), roe=h.roe,
        debt_to_ebitda=h.debt_to_ebitda, dividend_yield=h.dividend_yield,
        pl=h.pl, ev_ebitda=h.ev_ebitda,
    )
    return h


@pytest.fixture
def make_holding():
    """Factory for scored Holding records."""
    return _make_holding


@pytest.fixture
def brapi_quote():
    """A brapi /quote result with every field the mapper reads."""
    return {
        "symbol": "PETR4",
        "shortName": "PETROBRAS PN",
        "longName": "Petróleo Brasileiro S.A. - Petrobras",
        "currency": "BRL",
        "regularMarketPrice": 36.0,
        "regularMarketChange": 0.54,
        "regularMarketChangePercent": 1.52,
        "earningsPerShare": 8.0,
        "priceEarnings": 4.5,
        "bookValue": 32.0,
        "dividendYield": 0.12,
        "enterpriseValue": 600.0,
        "financialData": {
            "returnOnEquity": 0.25,
            "totalDebt": 200.0,
            "ebitda": 200.0,
            "profitMargins": 0.2,
            "totalRevenue": 500.0,
        },
    }


@pytest.fixture
def portfolio_holdings(make_holding):
    """Three positions plus one watch-only stock."""
    return [
        make_holding("PETR4", price=36.0, cost=30.0, quantity=100, lpa=8.0, vpa=32.0,
                     roe=0.25, change_percent=1.5),
        make_holding("VALE3", price=60.0, cost=75.0, quantity=50, lpa=4.0, vpa=40.0,
                     roe=0.12, change_percent=-2.0),
        make_holding("ITUB4", price=30.0, cost=25.0, quantity=200, lpa=3.5, vpa=18.0,
                     roe=0.21, change_percent=0.5),
        make_holding("MGLU3", price=10.0, lpa=-0.5, vpa=4.0, change_percent=-4.0),
    ]
