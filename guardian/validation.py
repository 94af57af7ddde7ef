"""
guardian/validation.py  -  Input validation rules

All validators return a list of error strings (empty = valid), so the CLI
just calls validate_*() and prints whatever comes back.
"""

import math
import re
from typing import List

_BAD_TICKER_CHARS = re.compile(r'[^A-Z0-9.\-]')
_MAX_TICKER_LEN   = 12

# Sanity bounds, "almost certainly a typo" guards rather than hard limits
_MAX_PRICE        = 1_000_000.0
_MAX_QUANTITY     = 1_000_000_000
_MAX_PER_SHARE    = 100_000.0     # EPS / book value per share


def validate_ticker(ticker: str) -> List[str]:
    errors = []
    t = ticker.strip().upper()
    if not t:
        errors.append("Ticker symbol cannot be empty.")
        return errors
    if len(t) > _MAX_TICKER_LEN:
        errors.append(f"Ticker '{t}' is too long (max {_MAX_TICKER_LEN} characters). "
                      f"Check the format, e.g. 'PETR4', 'AAPL', 'BRK-B'.")
    if _BAD_TICKER_CHARS.search(t[1:] if t.startswith('^') else t):
        errors.append(f"Ticker '{t}' contains invalid characters. "
                      f"Only letters, numbers, dots and hyphens are allowed, "
                      f"plus a leading '^' for index symbols.")
    if t.startswith('.') or t.endswith('.') or t.startswith('-') or t.endswith('-'):
        errors.append(f"Ticker '{t}' cannot start or end with '.' or '-'.")
    return errors


def validate_position(cost: float, quantity: float) -> List[str]:
    """Zero for both means "watch only" and is valid."""
    errors = []
    if not math.isfinite(cost) or not math.isfinite(quantity):
        errors.append("Cost and quantity must be finite numbers.")
        return errors

    if cost < 0:
        errors.append("Average cost cannot be negative.")
    elif cost > _MAX_PRICE:
        errors.append(f"Average cost {cost:,.2f} seems unusually high. Please double-check.")

    if quantity < 0:
        errors.append("Quantity cannot be negative (no short positions).")
    elif quantity > _MAX_QUANTITY:
        errors.append(f"Quantity {quantity:,.0f} seems extremely large. Please double-check.")

    if quantity > 0 and cost == 0:
        errors.append("Enter the average cost for a position with a quantity.")
    return errors


def validate_fundamental(name: str, value: float) -> List[str]:
    """
    Manual EPS / book value overrides. Negative values are accepted
    (a loss-making company has negative EPS); they only disable the
    Graham and DCF valuations.
    """
    if not math.isfinite(value):
        return [f"{name} must be a finite number."]
    if abs(value) > _MAX_PER_SHARE:
        return [f"{name} {value:,.2f} seems unusually large. Please double-check."]
    return []
