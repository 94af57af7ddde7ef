"""
guardian/display.py  -  Terminal rendering with rich

No calculations happen here beyond formatting; every number comes from
the engine modules. Prices are shown in the quote's own currency.
"""

from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from guardian.calculators import (
    HIGH_RISK, OVERVALUED, STRONG_BUY, UNDERVALUED, graham_value,
    margin_of_safety, roi, score_label, valuation_status,
)
from guardian.dcf import dcf_label, holding_dcf
from guardian.insights import InsightReport
from guardian.models import (
    DCFSummary, Holding, PortfolioSnapshot, PriceRange, RiskReport,
)
from guardian.risk import HIGH, MODERATE

console = Console()

# ── Palette ─────────────────────────────────────────────────────────────────
GAIN   = "green"
LOSS   = "red"
WARN   = "yellow"
MUTED  = "grey62"
ACCENT = "steel_blue1"
HEAD   = "bold white"


# ── Formatters ───────────────────────────────────────────────────────────────

def _colour(value: float, text: str) -> str:
    if value > 0:  return f"[{GAIN}]{text}[/{GAIN}]"
    if value < 0:  return f"[{LOSS}]{text}[/{LOSS}]"
    return f"[{MUTED}]{text}[/{MUTED}]"

def _cur(value: float) -> str:
    return f"{value:,.2f}"

def _pct(value: float) -> str:
    """value is a fraction: 0.153 → +15.30%"""
    sign = "+" if value > 0 else ""
    return f"{sign}{value * 100:.2f}%"

def _arrow(value: float) -> str:
    if value > 0:  return f"[{GAIN}]▲[/{GAIN}]"
    if value < 0:  return f"[{LOSS}]▼[/{LOSS}]"
    return f"[{MUTED}]─[/{MUTED}]"

def _qty(quantity: float) -> str:
    """Up to four decimals, trailing zeros dropped: 0.5 → 0.5, 1200 → 1,200"""
    return f"{quantity:,.4f}".rstrip("0").rstrip(".")

def _na() -> str:
    return f"[{MUTED}]n/a[/{MUTED}]"

def _status(status: str) -> str:
    if status == UNDERVALUED: return f"[{GAIN}]{status}[/{GAIN}]"
    if status == OVERVALUED:  return f"[{LOSS}]{status}[/{LOSS}]"
    return f"[{MUTED}]{status}[/{MUTED}]"

def _score(score: int) -> str:
    label = score_label(score)
    style = GAIN if label == STRONG_BUY else LOSS if label == HIGH_RISK else WARN
    return f"[{style}]{score:>3}  {label}[/{style}]"

def _table(**kwargs) -> Table:
    return Table(box=box.SIMPLE, show_header=True, header_style=f"bold {ACCENT}",
                 show_edge=False, pad_edge=True, **kwargs)


# ── Portfolio ────────────────────────────────────────────────────────────────

def print_portfolio_table(holdings: List[Holding]) -> None:
    if not holdings:
        console.print(f"\n  [{MUTED}]No stocks yet. Press 2 to add your first one.[/{MUTED}]\n")
        return

    table = _table(row_styles=["", "on grey7"])
    table.add_column("",        width=2)
    table.add_column("Ticker",  style=HEAD, min_width=8)
    table.add_column("Price",   justify="right", min_width=10)
    table.add_column("Day",     justify="right", min_width=8)
    table.add_column("Qty",     justify="right", min_width=8)
    table.add_column("Cost",    justify="right", min_width=10, style=MUTED)
    table.add_column("ROI",     justify="right", min_width=9)
    table.add_column("Graham",  justify="right", min_width=10)
    table.add_column("Margin",  justify="right", min_width=9)
    table.add_column("Status",  min_width=11)
    table.add_column("Score",   min_width=16)

    for h in holdings:
        vi     = graham_value(h.lpa, h.vpa)
        margin = margin_of_safety(h.price, vi)
        r      = roi(h.price, h.cost)
        star   = "[yellow]★[/yellow]" if h.is_favorite else _arrow(h.change_percent)
        table.add_row(
            star,
            h.ticker,
            _cur(h.price),
            _colour(h.change_percent, f"{h.change_percent:+.2f}%"),
            _qty(h.quantity) if h.quantity else _na(),
            _cur(h.cost) if h.cost else _na(),
            _colour(r, _pct(r)) if h.cost > 0 else _na(),
            _cur(vi) if vi > 0 else _na(),
            _colour(margin, _pct(margin)) if vi > 0 else _na(),
            _status(valuation_status(h.price, vi)),
            _score(h.score),
        )

    console.print()
    console.print(table)


def print_summary(snap: PortfolioSnapshot) -> None:
    parts = [
        f"[{MUTED}]Invested[/{MUTED}]  [white]{_cur(snap.total_invested)}[/white]",
        f"[{MUTED}]Value[/{MUTED}]  [bold white]{_cur(snap.total_current)}[/bold white]",
        f"[{MUTED}]Gain[/{MUTED}]  {_colour(snap.total_gain, _cur(snap.total_gain))}  "
        f"{_colour(snap.total_roi, _pct(snap.total_roi))}",
        f"[{MUTED}]Positions[/{MUTED}]  [white]{snap.position_count}[/white]",
    ]
    console.print("  " + "     ".join(parts))

    line = [
        f"[{GAIN}]{snap.undervalued} undervalued[/{GAIN}]",
        f"[{MUTED}]{snap.fair} fair[/{MUTED}]",
        f"[{LOSS}]{snap.overvalued} overvalued[/{LOSS}]",
        f"[{MUTED}]avg margin[/{MUTED}] {_colour(snap.avg_margin, _pct(snap.avg_margin))}",
    ]
    if snap.best and snap.worst:
        line += [
            f"[{MUTED}]best[/{MUTED}] {snap.best.ticker} {_colour(snap.best.roi, _pct(snap.best.roi))}",
            f"[{MUTED}]worst[/{MUTED}] {snap.worst.ticker} {_colour(snap.worst.roi, _pct(snap.worst.roi))}",
        ]
    console.print("  " + "   ".join(line) + "\n")


# ── Holding detail ────────────────────────────────────────────────────────────

def print_holding_detail(h: Holding, history: Optional[PriceRange] = None) -> None:
    vi  = graham_value(h.lpa, h.vpa)
    dcf = holding_dcf(h)
    b   = h.breakdown

    title = f"[bold white]{h.ticker}[/bold white]  [{MUTED}]{h.name}[/{MUTED}]"
    lines = [
        f"[{MUTED}]Price[/{MUTED}]          [white]{_cur(h.price)}[/white]  "
        f"{_colour(h.change, f'{h.change:+,.2f}')} {_colour(h.change_percent, f'({h.change_percent:+.2f}%)')}",
        f"[{MUTED}]Position[/{MUTED}]       [white]{_qty(h.quantity)} @ {_cur(h.cost)}[/white]",
        f"[{MUTED}]6-month range[/{MUTED}]  " + (
            f"[white]{_cur(history.low)} to {_cur(history.high)}[/white]  "
            f"{_colour(history.change, _pct(history.change))}" if history else _na()),
        f"[{MUTED}]EPS / BVPS[/{MUTED}]     [white]{h.lpa:.2f} / {h.vpa:.2f}[/white]",
        f"[{MUTED}]ROE[/{MUTED}]            [white]{h.roe * 100:.1f}%[/white]    "
        f"[{MUTED}]DY[/{MUTED}] [white]{h.dividend_yield * 100:.1f}%[/white]    "
        f"[{MUTED}]Debt/EBITDA[/{MUTED}] [white]{h.debt_to_ebitda:.2f}x[/white]",
        f"[{MUTED}]P/E[/{MUTED}]            [white]{h.pl:.1f}[/white]    "
        f"[{MUTED}]P/B[/{MUTED}] [white]{h.pvp:.2f}[/white]    "
        f"[{MUTED}]EV/EBITDA[/{MUTED}] [white]{h.ev_ebitda:.1f}[/white]",
        f"[{MUTED}]Margins[/{MUTED}]        [white]net {h.net_margin * 100:.1f}%  "
        f"EBITDA {h.ebitda_margin * 100:.1f}%[/white]",
        "",
        f"[{MUTED}]Graham value[/{MUTED}]   " + (f"[white]{_cur(vi)}[/white]  {_status(valuation_status(h.price, vi))}"
                                               if vi > 0 else _na()),
        f"[{MUTED}]DCF value[/{MUTED}]      " + (f"[white]{_cur(dcf.intrinsic_value)}[/white]  "
                                               f"{_colour(dcf.upside, _pct(dcf.upside))}  {_status(dcf_label(dcf.upside))}"
                                               if dcf.projections else _na()),
        "",
        f"[{MUTED}]Score[/{MUTED}]          {_score(h.score)}",
        f"[{MUTED}]  price[/{MUTED}] {b.price_score}/25   [{MUTED}]ROE[/{MUTED}] {b.profitability_score}/20   "
        f"[{MUTED}]debt[/{MUTED}] {b.health_score}/20   [{MUTED}]dividends[/{MUTED}] {b.dividend_score}/20   "
        f"[{MUTED}]multiples[/{MUTED}] {b.valuation_score}/15",
    ]
    if h.last_updated:
        lines.append(f"\n[{MUTED}]Updated {h.last_updated}[/{MUTED}]")
    console.print()
    console.print(Panel("\n".join(lines), title=title, border_style=ACCENT, padding=(1, 2)))


# ── DCF ───────────────────────────────────────────────────────────────────────

def print_dcf(summary: DCFSummary) -> None:
    if not summary.rows:
        console.print(f"\n  [{MUTED}]No holding with positive earnings to value.[/{MUTED}]\n")
        return

    console.print(
        f"\n  [{ACCENT}]DCF[/{ACCENT}]  [{MUTED}]WACC 15% · g 3% · 5 years[/{MUTED}]   "
        f"gauge [bold white]{summary.gauge}[/bold white]/100   "
        f"avg upside {_colour(summary.avg_upside, _pct(summary.avg_upside))}   "
        f"[{GAIN}]{summary.undervalued}[/{GAIN}] / [{MUTED}]{summary.fair}[/{MUTED}] / "
        f"[{LOSS}]{summary.overvalued}[/{LOSS}]")

    table = _table()
    table.add_column("Ticker",    style=HEAD, min_width=8)
    table.add_column("Price",     justify="right", min_width=10)
    table.add_column("Growth",    justify="right", min_width=7)
    table.add_column("DCF value", justify="right", min_width=11)
    table.add_column("Upside",    justify="right", min_width=9)
    table.add_column("DCF view",  min_width=11)
    table.add_column("Graham",    justify="right", min_width=10)
    table.add_column("Graham view", min_width=11)
    table.add_column("Year 1-5 EPS", style=MUTED)

    for row in summary.rows:
        h, d = row.holding, row.dcf
        table.add_row(
            h.ticker,
            _cur(h.price),
            f"{d.growth_rate * 100:.1f}%",
            _cur(d.intrinsic_value),
            _colour(d.upside, _pct(d.upside)),
            _status(dcf_label(d.upside)),
            _cur(row.graham) if row.graham > 0 else _na(),
            _status(row.graham_status),
            "  ".join(f"{f:.2f}" for f in d.projections),
        )
    console.print(table)


# ── Risk ──────────────────────────────────────────────────────────────────────

def print_risk(report: RiskReport, weights: Optional[Dict[str, float]] = None) -> None:
    level_style = LOSS if report.level == HIGH else WARN if report.level == MODERATE else GAIN
    c = report.concentration
    lines = [
        f"[{MUTED}]Volatility (ann.)[/{MUTED}]  [white]{report.volatility * 100:.2f}%[/white]",
        f"[{MUTED}]VaR 1-day 90%[/{MUTED}]      [white]{report.var90.var_percent * 100:.2f}%[/white]"
        f"  [{MUTED}]{_cur(report.var90.var_absolute)}[/{MUTED}]",
        f"[{MUTED}]VaR 1-day 95%[/{MUTED}]      [white]{report.var95.var_percent * 100:.2f}%[/white]"
        f"  [{MUTED}]{_cur(report.var95.var_absolute)}[/{MUTED}]",
        f"[{MUTED}]VaR 1-day 99%[/{MUTED}]      [white]{report.var99.var_percent * 100:.2f}%[/white]"
        f"  [{MUTED}]{_cur(report.var99.var_absolute)}[/{MUTED}]",
        f"[{MUTED}]Sharpe[/{MUTED}]             {_colour(report.sharpe, f'{report.sharpe:.2f}')}",
        f"[{MUTED}]Beta (proxy)[/{MUTED}]       [white]{report.beta:.2f}[/white]",
        f"[{MUTED}]Top position[/{MUTED}]       [white]{c.top_holding}[/white]  "
        f"[{MUTED}]{c.top_percent * 100:.1f}% · HHI {c.herfindahl:.3f}[/{MUTED}]",
    ]
    if weights:
        lines.append("")
        lines.append(f"[{MUTED}]Weights[/{MUTED}]")
        for ticker, w in sorted(weights.items(), key=lambda kv: -kv[1]):
            lines.append(f"  [white]{ticker:<8}[/white] {w * 100:5.1f}%")
    title = f"[bold white]Risk[/bold white]  [{level_style}]{report.level.upper()}[/{level_style}]"
    console.print()
    console.print(Panel("\n".join(lines), title=title, border_style=ACCENT, padding=(1, 2)))


# ── AI insights ───────────────────────────────────────────────────────────────

_KIND_STYLE = {"bullish": GAIN, "bearish": LOSS, "alert": WARN}


def print_insights(report: InsightReport) -> None:
    console.print(f"\n  [bold white]{report.summary}[/bold white]  "
                  f"[{MUTED}]({report.sentiment})[/{MUTED}]\n")
    for i in report.insights:
        style  = _KIND_STYLE.get(i.kind, MUTED)
        ticker = f"[{ACCENT}]{i.ticker}[/{ACCENT}] " if i.ticker else ""
        console.print(Panel(
            i.description,
            title=f"{ticker}[{style}]{i.title}[/{style}]",
            subtitle=f"[{MUTED}]{i.category} · confidence {i.confidence}[/{MUTED}]",
            border_style=style, padding=(0, 2)))
