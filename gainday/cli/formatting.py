"""Centralized formatting utilities for CLI output.

Provides consistent colors and number formats across all CLI commands.
Gains are green and losses red everywhere.
"""

from decimal import Decimal
from typing import Optional, Union

from gainday.core.quota.constants import RATIO_CRITICAL, RATIO_WARNING

Amount = Union[Decimal, float, int]


# =============================================================================
# Standard Padding & Borders
# =============================================================================

PANEL_PADDING = (1, 2)

BORDER_PRIMARY = "blue"      # Main content panels
BORDER_ERROR = "red"         # Error/alert panels

# Missing value indicator
MISSING = "-"

CURRENCY_SYMBOLS = {"JPY": "¥", "CNY": "¥", "USD": "$", "HKD": "HK$"}

# Currencies quoted without minor units
ZERO_DECIMAL_CURRENCIES = {"JPY"}


# =============================================================================
# Color Functions
# =============================================================================


def get_pnl_color(value: Optional[Amount]) -> str:
    """Get Rich color for a gain/loss amount."""
    if value is None or value == 0:
        return "white"
    return "green" if value > 0 else "red"


def get_quota_color(ratio: float) -> str:
    """Get Rich color for a quota usage ratio (0-1)."""
    if ratio >= RATIO_CRITICAL:
        return "red"
    elif ratio >= RATIO_WARNING:
        return "yellow"
    return "green"


# =============================================================================
# Number Formats
# =============================================================================


def format_money(amount: Optional[Amount], currency: str = "JPY", signed: bool = False) -> str:
    """Format an amount with its currency symbol, e.g. ¥277,500 or -$12.30."""
    if amount is None:
        return MISSING
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    places = 0 if currency in ZERO_DECIMAL_CURRENCIES else 2
    value = float(amount)
    sign = "-" if value < 0 else ("+" if signed and value > 0 else "")
    return f"{sign}{symbol}{abs(value):,.{places}f}"


def format_percent(pct: Optional[float], signed: bool = True) -> str:
    if pct is None:
        return MISSING
    if signed:
        sign = "+" if pct > 0 else ""
        return f"{sign}{pct:.2f}%"
    return f"{pct:.2f}%"


def format_man_yen(amount: Amount) -> str:
    """Format yen in units of 10,000 (man), e.g. 1,200,000 -> 120万."""
    man = float(amount) / 10_000
    if man == int(man):
        return f"{int(man):,}万"
    return f"{man:,.1f}万"


def format_quantity(quantity: Decimal) -> str:
    """Quantity without trailing zeros (10, 0.5, 1234.5678)."""
    return f"{quantity.normalize():f}"


def colored_money(amount: Optional[Amount], currency: str = "JPY", signed: bool = True) -> str:
    """format_money wrapped in gain/loss Rich markup."""
    color = get_pnl_color(amount)
    return f"[{color}]{format_money(amount, currency, signed=signed)}[/{color}]"


def colored_percent(pct: Optional[float]) -> str:
    color = get_pnl_color(pct)
    return f"[{color}]{format_percent(pct)}[/{color}]"
