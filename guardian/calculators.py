"""
guardian/calculators.py  -  Fundamentalist valuation formulas and the score

Every function here is pure and total: unavailable fundamentals (zero or
negative) resolve to a neutral result instead of raising.

Score rubric (0 to 100 points):
  - Graham price   (25) : price below the Graham intrinsic value
  - Profitability  (20) : ROE  >20% = 20 / 15-20% = 15 / 10-15% = 10
  - Health         (20) : Debt/EBITDA  <1.5 = 20 / 1.5-2 = 15 / 2-3 = 10
  - Dividends      (20) : DY  >6% = 20 / 4-6% = 10
  - Valuation      (15) : P/E (8 pts) + EV/EBITDA (7 pts)
"""

import math

from guardian.models import ScoreBreakdown

GRAHAM_CONSTANT = 22.5     # P/E of 15 × P/B of 1.5
STATUS_BAND     = 0.10     # ±10% margin separates Fair from the extremes

UNDERVALUED = "Undervalued"
OVERVALUED  = "Overvalued"
FAIR        = "Fair"

STRONG_BUY  = "Strong Buy"
WATCH       = "Watch"
HIGH_RISK   = "High Risk"


# ── Valuation formulas ───────────────────────────────────────────────────────

def graham_value(lpa: float, vpa: float) -> float:
    """
    Graham intrinsic value = sqrt(22.5 × EPS × book value per share)

    Returns 0.0 when either input is not positive (loss-making company or
    missing data) so callers can treat 0 as "no intrinsic value".
    """
    if lpa <= 0 or vpa <= 0:
        return 0.0
    return math.sqrt(GRAHAM_CONSTANT * lpa * vpa)


def roi(current_price: float, cost_price: float) -> float:
    """
    ROI = current / cost - 1

    0.0 when there is no cost basis. That is indistinguishable from a flat
    position; check cost_price > 0 yourself if the difference matters.
    """
    if cost_price <= 0:
        return 0.0
    return current_price / cost_price - 1


def margin_of_safety(current_price: float, intrinsic_value: float) -> float:
    """Positive = discount to intrinsic value, negative = premium."""
    if intrinsic_value <= 0:
        return 0.0
    return (intrinsic_value - current_price) / intrinsic_value


def valuation_status(price: float, intrinsic_value: float) -> str:
    if intrinsic_value <= 0:
        return FAIR
    margin = margin_of_safety(price, intrinsic_value)
    if margin > STATUS_BAND:
        return UNDERVALUED
    if margin < -STATUS_BAND:
        return OVERVALUED
    return FAIR


# ── Score bands ──────────────────────────────────────────────────────────────

def _price_points(price: float, graham: float) -> int:
    return 25 if graham > 0 and price < graham else 0


def _roe_points(roe: float) -> int:
    if roe > 0.20:  return 20
    if roe >= 0.15: return 15
    if roe >= 0.10: return 10
    return 0


def _debt_points(debt_to_ebitda: float) -> int:
    if debt_to_ebitda < 0:    return 0
    if debt_to_ebitda < 1.5:  return 20
    if debt_to_ebitda < 2.0:  return 15
    if debt_to_ebitda <= 3.0: return 10
    return 0


def _dividend_points(dividend_yield: float) -> int:
    if dividend_yield > 0.06:  return 20
    if dividend_yield >= 0.04: return 10
    return 0


def _pl_points(pl: float) -> int:
    if pl <= 0:  return 0
    if pl <= 10: return 8
    if pl <= 20: return 5
    if pl <= 30: return 2
    return 0


def _ev_ebitda_points(ev_ebitda: float) -> int:
    if ev_ebitda <= 0: return 0
    if ev_ebitda < 6:  return 7
    if ev_ebitda < 12: return 4
    if ev_ebitda < 20: return 1
    return 0


def score_stock(price: float, graham: float, roe: float, debt_to_ebitda: float,
                dividend_yield: float, pl: float, ev_ebitda: float) -> ScoreBreakdown:
    """
    Apply the five-factor rubric. The result's .total is the 0-100 score
    and always equals the sum of its fields.
    """
    return ScoreBreakdown(
        price_score=_price_points(price, graham),
        profitability_score=_roe_points(roe),
        health_score=_debt_points(debt_to_ebitda),
        dividend_score=_dividend_points(dividend_yield),
        valuation_score=_pl_points(pl) + _ev_ebitda_points(ev_ebitda),
    )


def score_label(score: int) -> str:
    # strictly above 80 for Strong Buy; 80 itself is Watch
    if score > 80:
        return STRONG_BUY
    if score >= 50:
        return WATCH
    return HIGH_RISK
