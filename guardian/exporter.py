"""
guardian/exporter.py  -  Excel and CSV export
"""

import csv
from datetime import datetime
from typing import List, Optional

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from guardian.analysis import TABLE_COLUMNS, summarize, valuation_table
from guardian.models import Holding

# ── Colour constants ──────────────────────────────────────────────────────────
HEADER_BG  = "1A237E"
HEADER_FG  = "FFFFFF"
SUBHEAD_BG = "283593"
POS_FG     = "1B5E20"
NEG_FG     = "B71C1C"
ALT_ROW    = "E8EAF6"

# number format per valuation_table column
_FORMATS = {
    "Price": "#,##0.00", "Quantity": "#,##0.####", "Cost": "#,##0.00",
    "ROI": "0.00%;[Red]-0.00%", "Graham Value": "#,##0.00",
    "Margin": "0.00%;[Red]-0.00%", "DCF Value": "#,##0.00",
    "DCF Upside": "0.00%;[Red]-0.00%", "Score": "0",
}
_SIGNED = {"ROI", "Margin", "DCF Upside"}

def _border():
    s = Side(style="thin", color="BDBDBD")
    return Border(left=s, right=s, top=s, bottom=s)

def _header_font(bold=True, size=10):
    return Font(name="Arial", size=size, bold=bold, color=HEADER_FG)

def _header_fill(bg=HEADER_BG):
    return PatternFill("solid", fgColor=bg)

def _style(cell, value=None, font=None, fill=None, fmt=None, align="left"):
    if value is not None: cell.value = value
    if font:  cell.font = font
    if fill:  cell.fill = fill
    if fmt:   cell.number_format = fmt
    cell.border    = _border()
    cell.alignment = Alignment(horizontal=align)
    return cell

def _title(ws, text: str, span: str, size: int = 14):
    ws.merge_cells(span)
    first = span.split(":")[0]
    _style(ws[first], text, font=Font(name="Arial", size=size, bold=True, color=HEADER_FG),
           fill=_header_fill(), align="center")
    ws.row_dimensions[1].height = 26

# ── Public API ────────────────────────────────────────────────────────────────
def export_to_excel(holdings: List[Holding], filename: Optional[str] = None) -> str:
    if filename is None:
        filename = f"guardian_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    wb = openpyxl.Workbook()
    _valuation_sheet(wb, holdings)
    _risk_sheet(wb, holdings)
    if "Sheet" in wb.sheetnames:
        del wb["Sheet"]
    wb.save(filename)
    return filename

def export_to_csv(holdings: List[Holding], filename: Optional[str] = None) -> str:
    if filename is None:
        filename = f"guardian_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    df = valuation_table(holdings)
    with open(filename, "w", newline="") as f:
        w = csv.writer(f)
        w.writerow(TABLE_COLUMNS)
        for row in df.itertuples(index=False):
            w.writerow([round(v, 6) if isinstance(v, float) else v for v in row])
    return filename

# ── Valuation sheet ───────────────────────────────────────────────────────────
def _valuation_sheet(wb, holdings):
    ws   = wb.create_sheet("Valuation")
    last = get_column_letter(len(TABLE_COLUMNS))
    _title(ws, "Portfolio Valuation", f"A1:{last}1", size=16)
    ws.merge_cells(f"A2:{last}2")
    c = ws["A2"]
    c.value = f"Generated: {datetime.now().strftime('%d %b %Y  %H:%M')}"
    c.font  = Font(name="Arial", size=10, italic=True, color=HEADER_FG)
    c.fill  = _header_fill(SUBHEAD_BG)
    c.alignment = Alignment(horizontal="center")

    for col, h in enumerate(TABLE_COLUMNS, 1):
        _style(ws.cell(4, col, h), font=_header_font(), fill=_header_fill(), align="center")

    df = valuation_table(holdings)
    for i, row in enumerate(df.itertuples(index=False)):
        r    = 5 + i
        fill = PatternFill("solid", fgColor=ALT_ROW if i % 2 == 0 else "FFFFFF")
        for col, (name, val) in enumerate(zip(TABLE_COLUMNS, row), 1):
            cell = ws.cell(r, col, val.item() if hasattr(val, "item") else val)
            cell.font   = Font(name="Arial", size=10)
            cell.fill   = fill
            cell.border = _border()
            cell.alignment = Alignment(horizontal="left" if col == 1 else "right")
            if name in _FORMATS:
                cell.number_format = _FORMATS[name]
            if name in _SIGNED and val != 0:
                cell.font = Font(name="Arial", size=10, color=POS_FG if val > 0 else NEG_FG)

    for i, w in enumerate([10, 12, 10, 12, 10, 14, 10, 13, 12, 12, 8, 12], 1):
        ws.column_dimensions[get_column_letter(i)].width = w
    ws.freeze_panes = "A5"

# ── Risk sheet ────────────────────────────────────────────────────────────────
def _risk_sheet(wb, holdings):
    ws   = wb.create_sheet("Portfolio")
    snap = summarize(holdings)
    risk = snap.risk
    _title(ws, "Portfolio Summary & Risk", "A1:B1")

    rows = [
        ("Total invested",          snap.total_invested,          "#,##0.00"),
        ("Current value",           snap.total_current,           "#,##0.00"),
        ("Gain",                    snap.total_gain,              "#,##0.00;[Red]-#,##0.00"),
        ("ROI",                     snap.total_roi,               "0.00%;[Red]-0.00%"),
        ("Positions",               snap.position_count,          "0"),
        ("Undervalued",             snap.undervalued,             "0"),
        ("Fair",                    snap.fair,                    "0"),
        ("Overvalued",              snap.overvalued,              "0"),
        ("Avg margin of safety",    snap.avg_margin,              "0.00%;[Red]-0.00%"),
        ("Volatility (annualised)", risk.volatility,              "0.00%"),
        ("VaR 1-day 90%",           risk.var90.var_percent,       "0.00%"),
        ("VaR 1-day 95%",           risk.var95.var_percent,       "0.00%"),
        ("VaR 1-day 99%",           risk.var99.var_percent,       "0.00%"),
        ("VaR 95% (value)",         risk.var95.var_absolute,      "#,##0.00"),
        ("Sharpe ratio",            risk.sharpe,                  "0.00"),
        ("Beta (proxy)",            risk.beta,                    "0.00"),
        ("Top position",            risk.concentration.top_holding, None),
        ("Top weight",              risk.concentration.top_percent, "0.00%"),
        ("Herfindahl index",        risk.concentration.herfindahl,  "0.000"),
        ("Risk level",              risk.level,                   None),
    ]
    for i, (label, value, fmt) in enumerate(rows):
        r = 3 + i
        _style(ws.cell(r, 1, label), font=Font(name="Arial", size=10, bold=True))
        _style(ws.cell(r, 2, value), font=Font(name="Arial", size=10), fmt=fmt, align="right")

    ws.column_dimensions["A"].width = 26
    ws.column_dimensions["B"].width = 18
