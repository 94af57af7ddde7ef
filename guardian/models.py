"""
guardian/models.py  -  Pure dataclasses, no dependencies on other guardian modules.

Fundamentals use 0.0 for "not available". The calculators treat any
non-positive value as missing, so a provider gap never raises.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ScoreBreakdown:
    price_score:         int = 0   # 0 or 25
    profitability_score: int = 0   # 0, 10, 15 or 20
    health_score:        int = 0   # 0, 10, 15 or 20
    dividend_score:      int = 0   # 0, 10 or 20
    valuation_score:     int = 0   # 0..15 (P/E + EV/EBITDA)

    @property
    def total(self) -> int:
        return (self.price_score + self.profitability_score + self.health_score
                + self.dividend_score + self.valuation_score)


@dataclass
class Holding:
    ticker:         str
    price:          float = 0.0
    cost:           float = 0.0    # average acquisition price, 0 = watch only
    quantity:       float = 0.0
    lpa:            float = 0.0    # earnings per share
    vpa:            float = 0.0    # book value per share
    roe:            float = 0.0    # fraction, 0.15 = 15%
    debt_to_ebitda: float = 0.0
    change:         float = 0.0
    change_percent: float = 0.0    # percent, 1.5 = +1.5%
    pl:             float = 0.0
    pvp:            float = 0.0
    dividend_yield: float = 0.0    # fraction
    ev_ebitda:      float = 0.0
    net_margin:     float = 0.0
    ebitda_margin:  float = 0.0
    name:           str   = ""
    last_updated:   str   = ""     # ISO timestamp of the last quote
    is_favorite:    bool  = False
    breakdown:      ScoreBreakdown = field(default_factory=ScoreBreakdown)

    @property
    def score(self) -> int:
        return self.breakdown.total

    @property
    def has_position(self) -> bool:
        return self.quantity > 0 and self.cost > 0

    @property
    def market_value(self) -> float:
        return self.price * self.quantity

    @property
    def invested(self) -> float:
        return self.cost * self.quantity


# ── Derived results ──────────────────────────────────────────────────────────

@dataclass
class DCFResult:
    intrinsic_value:  float
    upside:           float
    projections:      List[float]
    terminal_value:   float
    pv_fcf:           float
    pv_terminal:      float
    wacc:             float
    perpetual_growth: float
    growth_rate:      float


@dataclass
class VaRResult:
    var_percent:     float   # 1-day loss as a fraction of portfolio value
    var_absolute:    float
    portfolio_value: float


@dataclass
class Concentration:
    top_holding: str
    top_percent: float
    herfindahl:  float


@dataclass
class RiskReport:
    volatility:    float
    var90:         VaRResult
    var95:         VaRResult
    var99:         VaRResult
    sharpe:        float
    concentration: Concentration
    beta:          float
    level:         str


@dataclass
class Performer:
    ticker: str
    roi:    float


@dataclass
class DCFRow:
    holding:       Holding
    dcf:           DCFResult
    graham:        float
    graham_status: str


@dataclass
class DCFSummary:
    rows:        List[DCFRow]
    avg_upside:  float
    undervalued: int
    fair:        int
    overvalued:  int
    gauge:       int


@dataclass
class PortfolioSnapshot:
    total_invested: float
    total_current:  float
    total_gain:     float
    total_roi:      float
    best:           Optional[Performer]
    worst:          Optional[Performer]
    undervalued:    int
    overvalued:     int
    fair:           int
    avg_margin:     float
    position_count: int
    risk:           RiskReport


@dataclass
class PriceRange:
    high:   float
    low:    float
    first:  float
    last:   float
    change: float   # last / first - 1
