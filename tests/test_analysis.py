"""Tests for portfolio-wide aggregates and the valuation table."""

import copy

import pandas as pd
import pytest

from guardian.analysis import (
    TABLE_COLUMNS, portfolio_weights, positions, price_range, summarize,
    valuation_table,
)
from guardian.calculators import FAIR, graham_value, margin_of_safety


class TestSummarize:
    def test_empty(self):
        snap = summarize([])
        assert snap.total_invested == 0
        assert snap.total_current == 0
        assert snap.total_roi == 0
        assert snap.best is None and snap.worst is None
        assert snap.position_count == 0
        assert snap.avg_margin == 0
        assert snap.risk.concentration.top_holding == "N/A"

    def test_totals(self, portfolio_holdings):
        snap = summarize(portfolio_holdings)
        invested = 30 * 100 + 75 * 50 + 25 * 200
        current  = 36 * 100 + 60 * 50 + 30 * 200
        assert snap.total_invested == pytest.approx(invested)
        assert snap.total_current == pytest.approx(current)
        assert snap.total_gain == pytest.approx(current - invested)
        assert snap.total_roi == pytest.approx((current - invested) / invested)
        assert snap.position_count == 3

    def test_best_and_worst(self, portfolio_holdings):
        snap = summarize(portfolio_holdings)
        assert snap.best.ticker == "PETR4"
        assert snap.best.roi == pytest.approx(0.2)
        assert snap.worst.ticker == "VALE3"
        assert snap.worst.roi == pytest.approx(-0.2)

    def test_status_counts_cover_every_holding(self, portfolio_holdings):
        snap = summarize(portfolio_holdings)
        assert snap.undervalued + snap.fair + snap.overvalued == len(portfolio_holdings)

    def test_avg_margin_skips_missing_intrinsic(self, portfolio_holdings):
        margins = [margin_of_safety(h.price, graham_value(h.lpa, h.vpa))
                   for h in portfolio_holdings if graham_value(h.lpa, h.vpa) > 0]
        assert len(margins) == 3
        assert summarize(portfolio_holdings).avg_margin == pytest.approx(sum(margins) / 3)

    def test_inputs_untouched(self, portfolio_holdings):
        before = copy.deepcopy(portfolio_holdings)
        summarize(portfolio_holdings)
        valuation_table(portfolio_holdings)
        assert portfolio_holdings == before


class TestWeights:
    def test_positions_excludes_watch_only(self, portfolio_holdings):
        assert [h.ticker for h in positions(portfolio_holdings)] == ["PETR4", "VALE3", "ITUB4"]

    def test_weights_sum_to_one(self, portfolio_holdings):
        weights = portfolio_weights(portfolio_holdings)
        assert set(weights) == {"PETR4", "VALE3", "ITUB4"}
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_no_weights_without_positions(self, make_holding):
        assert portfolio_weights([make_holding("AAAA3", price=10.0)]) == {}


class TestValuationTable:
    def test_columns_and_rows(self, portfolio_holdings):
        df = valuation_table(portfolio_holdings)
        assert list(df.columns) == TABLE_COLUMNS
        assert list(df["Ticker"]) == ["PETR4", "VALE3", "ITUB4", "MGLU3"]

    def test_loss_maker_has_no_valuation(self, portfolio_holdings):
        row = valuation_table(portfolio_holdings).set_index("Ticker").loc["MGLU3"]
        assert row["Graham Value"] == 0
        assert row["DCF Value"] == 0
        assert row["Status"] == FAIR

    def test_empty_table_keeps_columns(self):
        df = valuation_table([])
        assert df.empty
        assert list(df.columns) == TABLE_COLUMNS


class TestPriceRange:
    def test_high_low_and_return(self):
        history = pd.DataFrame({"open": [10, 11, 12], "high": [11, 14, 13],
                                "low": [9, 10, 11], "close": [10.0, 13.0, 12.0]})
        r = price_range(history)
        assert (r.high, r.low) == (14.0, 9.0)
        assert (r.first, r.last) == (10.0, 12.0)
        assert r.change == pytest.approx(0.2)

    def test_close_only(self):
        r = price_range(pd.DataFrame({"close": [5.0, 4.0]}))
        assert (r.high, r.low) == (5.0, 4.0)
        assert r.change == pytest.approx(-0.2)

    def test_empty_history(self):
        assert price_range(pd.DataFrame()) is None
        assert price_range(pd.DataFrame({"close": [float("nan")]})) is None

    def test_zero_first_close(self):
        assert price_range(pd.DataFrame({"close": [0.0, 3.0]})).change == 0
