"""
guardian/risk.py  -  Portfolio risk metrics

These are deliberately simple proxies built from the last session's
percent change of each holding, not from a return history:

  - Volatility      : cross-sectional std of daily changes × sqrt(252)
  - Value at Risk   : parametric, 1-day horizon, z-score table
  - Sharpe Ratio    : (mean daily change - daily risk-free) × 252 / volatility
  - Concentration   : largest position and Herfindahl index (sum of w²)
  - Beta proxy      : value-weighted |change| relative to the plain average

Holdings whose change_percent is exactly 0 are left out of the return
sample, since 0 is also what a provider sends when it has no data.
"""

from typing import List

import numpy as np

from guardian.models import Concentration, Holding, RiskReport, VaRResult

TRADING_DAYS     = 252
RISK_FREE_ANNUAL = 0.1375   # SELIC assumption, update manually if needed
DEFAULT_Z        = 1.645
Z_SCORES         = {0.90: 1.282, 0.95: 1.645, 0.99: 2.326}

LOW      = "Low"
MODERATE = "Moderate"
HIGH     = "High"


def _daily_rf() -> float:
    return RISK_FREE_ANNUAL / TRADING_DAYS


def daily_returns(holdings: List[Holding]) -> np.ndarray:
    return np.array([h.change_percent / 100 for h in holdings
                     if h.change_percent != 0], dtype=float)


def _risk_value(h: Holding) -> float:
    # watch-only and fractional holdings count as at least one unit
    return h.price * max(h.quantity, 1)


# ── Core metrics ──────────────────────────────────────────────────────────────

def portfolio_volatility(holdings: List[Holding]) -> float:
    """Annualised volatility; population std (ddof=0) of the daily sample."""
    returns = daily_returns(holdings)
    if returns.size == 0:
        return 0.0
    return float(np.std(returns) * np.sqrt(TRADING_DAYS))


def z_score(confidence: float) -> float:
    for level, z in Z_SCORES.items():
        if np.isclose(confidence, level):
            return z
    return DEFAULT_Z


def value_at_risk(holdings: List[Holding], confidence: float = 0.95) -> VaRResult:
    """
    Parametric 1-day VaR.

    var_percent = z × annual volatility / sqrt(252)
    var_absolute = portfolio value × var_percent

    Unknown confidence levels fall back to the 95% z-score.
    """
    portfolio_value = sum(_risk_value(h) for h in holdings)
    if not holdings or portfolio_value == 0:
        return VaRResult(var_percent=0.0, var_absolute=0.0, portfolio_value=0.0)

    var_percent = z_score(confidence) * portfolio_volatility(holdings) / np.sqrt(TRADING_DAYS)
    return VaRResult(var_percent=float(var_percent),
                     var_absolute=float(portfolio_value * var_percent),
                     portfolio_value=float(portfolio_value))


def sharpe_ratio(holdings: List[Holding]) -> float:
    returns = daily_returns(holdings)
    if returns.size == 0:
        return 0.0
    volatility = portfolio_volatility(holdings)
    if volatility == 0:
        return 0.0
    return float((returns.mean() - _daily_rf()) * TRADING_DAYS / volatility)


def concentration(holdings: List[Holding]) -> Concentration:
    """
    Largest position and HHI over holdings with quantity > 0.
    HHI is 1.0 for a single position and 1/n for n equal ones.
    """
    held  = [h for h in holdings if h.quantity > 0]
    total = sum(h.market_value for h in held)
    if not held or total == 0:
        return Concentration(top_holding="N/A", top_percent=0.0, herfindahl=0.0)

    weights = np.array([h.market_value / total for h in held])
    top     = held[int(np.argmax([h.market_value for h in held]))]
    return Concentration(top_holding=top.ticker,
                         top_percent=float(top.market_value / total),
                         herfindahl=float(np.sum(weights ** 2)))


def beta_proxy(holdings: List[Holding]) -> float:
    """
    Value-weighted mean |change| divided by the simple mean |change|.
    Above 1 means the big positions move more than the average holding.
    Clamped to [0, 3].
    """
    if not holdings:
        return 1.0
    values = np.array([_risk_value(h) for h in holdings])
    moves  = np.array([abs(h.change_percent) for h in holdings])
    total  = values.sum()
    if total == 0:
        return 1.0
    weighted = float(np.sum(moves * values / total))
    avg_move = float(moves.mean()) or 1.0
    return min(max(weighted / avg_move, 0.0), 3.0)


def risk_level(var_percent: float, volatility: float) -> str:
    score = var_percent * 100 + volatility * 50
    if score > 8:
        return HIGH
    if score > 4:
        return MODERATE
    return LOW


# ── Summary ───────────────────────────────────────────────────────────────────

def risk_report(holdings: List[Holding]) -> RiskReport:
    volatility = portfolio_volatility(holdings)
    var95      = value_at_risk(holdings, 0.95)
    return RiskReport(
        volatility=volatility,
        var90=value_at_risk(holdings, 0.90),
        var95=var95,
        var99=value_at_risk(holdings, 0.99),
        sharpe=sharpe_ratio(holdings),
        concentration=concentration(holdings),
        beta=beta_proxy(holdings),
        level=risk_level(var95.var_percent, volatility),
    )
