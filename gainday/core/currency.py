"""
Currency conversion over a frozen rate table.

Rates are keyed by (from, to) ISO codes and expressed as Decimal units of
``to`` per unit of ``from``. The converter never inverts a pair, never
chains through a third currency and never assumes parity: a pair that is
not in the table raises MissingRateError.
"""

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Iterable, Mapping, Optional

from gainday.core.data.exceptions import MissingRateError
from gainday.core.ledger.cost_basis import cost_basis_for
from gainday.core.ledger.ledger import PortfolioLedger

RateTable = Mapping[tuple[str, str], Decimal]

MONEY_QUANTUM = Decimal("0.0001")
ONE = Decimal("1")


def to_decimal(value) -> Decimal:
    """Convert a number (or numeric string) to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(amount: Decimal) -> Decimal:
    """Round a monetary amount to storage precision (4 places, half-even)."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_EVEN)


def pair_symbol(from_currency: str, to_currency: str) -> str:
    """Concatenated pair code, e.g. ``USDJPY``."""
    return f"{from_currency}{to_currency}"


def rate(from_currency: str, to_currency: str, rates: RateTable) -> Decimal:
    """
    Look up the multiplier converting ``from_currency`` into ``to_currency``.

    Raises:
        MissingRateError: If the currencies differ and the pair is absent.
    """
    if from_currency == to_currency:
        return ONE
    try:
        return rates[(from_currency, to_currency)]
    except KeyError:
        raise MissingRateError(from_currency, to_currency) from None


def convert(amount: Decimal, from_currency: str, to_currency: str, rates: RateTable) -> Decimal:
    return amount * rate(from_currency, to_currency, rates)


def required_pairs(
    portfolios: Iterable[PortfolioLedger],
    reporting_currency: Optional[str] = None,
    open_only: bool = True,
) -> set[tuple[str, str]]:
    """
    Every rate a valuation of ``portfolios`` will need.

    Holding currency -> portfolio base for each holding, plus portfolio
    base -> reporting currency when a reporting currency is given.
    Same-currency pairs are omitted. Closed holdings are left out unless
    ``open_only`` is False; historical replays still need their rates.
    """
    pairs: set[tuple[str, str]] = set()
    for portfolio in portfolios:
        base = portfolio.base_currency.value
        for holding in portfolio.holdings:
            if holding.currency == base:
                continue
            if open_only and cost_basis_for(holding).quantity <= 0:
                continue
            pairs.add((holding.currency, base))
        if reporting_currency and base != reporting_currency:
            pairs.add((base, reporting_currency))
    return pairs
