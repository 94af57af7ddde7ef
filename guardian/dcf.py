"""
guardian/dcf.py  -  Simplified discounted cash flow valuation

Earnings per share stand in for free cash flow per share.

Assumptions (fixed, tuned for the Brazilian market):
  - Discount rate (WACC)   : 15%  (SELIC + equity risk premium)
  - Perpetual growth       : 3%   (tracks long-run inflation)
  - Explicit horizon       : 5 years
  - Yearly growth          : ROE clamped to [2%, 15%]
  - Terminal value         : Gordon growth on the year-5 cash flow
"""

import math
from typing import List

from guardian.calculators import (
    FAIR, OVERVALUED, UNDERVALUED, graham_value, valuation_status,
)
from guardian.models import DCFResult, DCFRow, DCFSummary, Holding

WACC             = 0.15
PERPETUAL_GROWTH = 0.03
PROJECTION_YEARS = 5
MIN_GROWTH       = 0.02
MAX_GROWTH       = 0.15


def _empty_result() -> DCFResult:
    return DCFResult(intrinsic_value=0.0, upside=0.0, projections=[],
                     terminal_value=0.0, pv_fcf=0.0, pv_terminal=0.0,
                     wacc=WACC, perpetual_growth=PERPETUAL_GROWTH,
                     growth_rate=0.0)


def calculate_dcf(lpa: float, roe: float, price: float) -> DCFResult:
    """
    Project EPS forward five years, add a Gordon terminal value and
    discount everything at WACC.

    Loss-making (lpa <= 0) or unpriced securities return an all-zero result
    with no projections.
    """
    if lpa <= 0 or price <= 0:
        return _empty_result()

    growth = min(max(roe, MIN_GROWTH), MAX_GROWTH)

    projections: List[float] = []
    fcf = lpa
    for _ in range(PROJECTION_YEARS):
        fcf = fcf * (1 + growth)
        projections.append(fcf)

    terminal = projections[-1] * (1 + PERPETUAL_GROWTH) / (WACC - PERPETUAL_GROWTH)

    pv_fcf = sum(f / (1 + WACC) ** (i + 1) for i, f in enumerate(projections))
    pv_terminal = terminal / (1 + WACC) ** PROJECTION_YEARS

    intrinsic = max(pv_fcf + pv_terminal, 0.0)
    return DCFResult(
        intrinsic_value=intrinsic,
        upside=(intrinsic - price) / price,
        projections=projections,
        terminal_value=terminal,
        pv_fcf=pv_fcf,
        pv_terminal=pv_terminal,
        wacc=WACC,
        perpetual_growth=PERPETUAL_GROWTH,
        growth_rate=growth,
    )


def holding_dcf(holding: Holding) -> DCFResult:
    return calculate_dcf(holding.lpa, holding.roe, holding.price)


def dcf_label(upside: float) -> str:
    """The DCF view demands a 20% upside before calling a stock cheap."""
    if upside > 0.20:
        return UNDERVALUED
    if upside > -0.10:
        return FAIR
    return OVERVALUED


def dcf_summary(holdings: List[Holding]) -> DCFSummary:
    """
    Value every holding with positive earnings, best upside first.

    The gauge maps the average upside onto 0-100 with -50% at 0 and
    +50% at 100.
    """
    rows = []
    for h in holdings:
        if h.lpa <= 0:
            continue
        graham = graham_value(h.lpa, h.vpa)
        rows.append(DCFRow(holding=h, dcf=holding_dcf(h), graham=graham,
                           graham_status=valuation_status(h.price, graham)))
    rows.sort(key=lambda r: -r.dcf.upside)

    if not rows:
        return DCFSummary(rows=[], avg_upside=0.0, undervalued=0, fair=0,
                          overvalued=0, gauge=0)

    avg_upside  = sum(r.dcf.upside for r in rows) / len(rows)
    labels      = [dcf_label(r.dcf.upside) for r in rows]
    # clamp before flooring; an overflowed upside is inf
    gauge       = math.floor((min(max(avg_upside, -0.5), 0.5) + 0.5) * 100 + 0.5)
    return DCFSummary(
        rows=rows,
        avg_upside=avg_upside,
        undervalued=labels.count(UNDERVALUED),
        fair=labels.count(FAIR),
        overvalued=labels.count(OVERVALUED),
        gauge=int(gauge),
    )
