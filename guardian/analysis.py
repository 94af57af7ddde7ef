"""
guardian/analysis.py  -  Portfolio-wide aggregates

Everything is recomputed from the holdings list on every call. Nothing is
cached and the input records are never modified.
"""

from typing import Dict, List, Optional

import pandas as pd

from guardian.calculators import (
    OVERVALUED, UNDERVALUED, graham_value, margin_of_safety, roi,
    score_label, valuation_status,
)
from guardian.dcf import holding_dcf
from guardian.models import Holding, Performer, PortfolioSnapshot, PriceRange
from guardian.risk import risk_report

TABLE_COLUMNS = ["Ticker", "Price", "Quantity", "Cost", "ROI", "Graham Value",
                 "Margin", "Status", "DCF Value", "DCF Upside", "Score", "Label"]


def positions(holdings: List[Holding]) -> List[Holding]:
    """Holdings with both a quantity and a cost basis."""
    return [h for h in holdings if h.has_position]


def portfolio_weights(holdings: List[Holding]) -> Dict[str, float]:
    values = {h.ticker: h.market_value for h in holdings if h.quantity > 0}
    total  = sum(values.values())
    return {t: v / total for t, v in values.items()} if total else {}


def summarize(holdings: List[Holding]) -> PortfolioSnapshot:
    held           = positions(holdings)
    total_invested = sum(h.invested for h in held)
    total_current  = sum(h.market_value for h in held)
    total_gain     = total_current - total_invested

    best: Optional[Performer]  = None
    worst: Optional[Performer] = None
    for h in held:
        r = roi(h.price, h.cost)
        if best is None or r > best.roi:
            best = Performer(ticker=h.ticker, roi=r)
        if worst is None or r < worst.roi:
            worst = Performer(ticker=h.ticker, roi=r)

    statuses = []
    margins  = []
    for h in holdings:
        vi = graham_value(h.lpa, h.vpa)
        statuses.append(valuation_status(h.price, vi))
        if vi > 0:
            margins.append(margin_of_safety(h.price, vi))

    undervalued = statuses.count(UNDERVALUED)
    overvalued  = statuses.count(OVERVALUED)
    return PortfolioSnapshot(
        total_invested=total_invested,
        total_current=total_current,
        total_gain=total_gain,
        total_roi=total_gain / total_invested if total_invested > 0 else 0.0,
        best=best,
        worst=worst,
        undervalued=undervalued,
        overvalued=overvalued,
        fair=len(statuses) - undervalued - overvalued,
        avg_margin=sum(margins) / len(margins) if margins else 0.0,
        position_count=len(held),
        risk=risk_report(holdings),
    )


def valuation_table(holdings: List[Holding]) -> pd.DataFrame:
    """One row per holding with both valuation opinions side by side."""
    rows = []
    for h in holdings:
        vi  = graham_value(h.lpa, h.vpa)
        dcf = holding_dcf(h)
        rows.append({
            "Ticker":        h.ticker,
            "Price":         h.price,
            "Quantity":      h.quantity,
            "Cost":          h.cost,
            "ROI":           roi(h.price, h.cost),
            "Graham Value":  vi,
            "Margin":        margin_of_safety(h.price, vi),
            "Status":        valuation_status(h.price, vi),
            "DCF Value":     dcf.intrinsic_value,
            "DCF Upside":    dcf.upside,
            "Score":         h.score,
            "Label":         score_label(h.score),
        })
    return pd.DataFrame(rows, columns=TABLE_COLUMNS)


def price_range(history: pd.DataFrame) -> Optional[PriceRange]:
    """High, low and period return from a provider price history; None if empty."""
    if history is None or history.empty or "close" not in history.columns:
        return None
    close = history["close"].dropna()
    if close.empty:
        return None
    high  = history["high"].max() if "high" in history.columns else close.max()
    low   = history["low"].min() if "low" in history.columns else close.min()
    first = float(close.iloc[0])
    last  = float(close.iloc[-1])
    return PriceRange(high=float(high), low=float(low), first=first, last=last,
                      change=last / first - 1 if first > 0 else 0.0)
