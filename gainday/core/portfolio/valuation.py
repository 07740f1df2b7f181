"""
Portfolio valuation against live quotes and exchange rates.

Pure functions over frozen inputs: a PortfolioLedger, a symbol -> PriceQuote
map and a RateTable. Nothing here touches the database or the network, so
the same inputs always produce the same figures.

Per holding (converted to the portfolio's base currency):
    market value   = effective price * quantity
    cost basis     = average cost * quantity
    daily P&L      = (effective price - previous close) * quantity

Per portfolio the holding figures are summed; the global aggregate
converts each portfolio's own totals once into the reporting currency.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from gainday.core.currency import RateTable, quantize_money, rate
from gainday.core.data.exceptions import GaindayError, MissingRateError
from gainday.core.data.quotes import PriceQuote
from gainday.core.ledger.cost_basis import CostBasis, cost_basis_for
from gainday.core.ledger.enums import AssetType, MarketState
from gainday.core.ledger.ledger import HoldingLedger, PortfolioLedger

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def percent_of(numerator: Decimal, denominator: Decimal) -> float:
    """numerator / denominator * 100, or 0.0 when the denominator is not positive."""
    if denominator <= ZERO:
        return 0.0
    return float(numerator / denominator * 100)


def daily_percent(daily_pnl: Decimal, total_value: Decimal) -> float:
    """Daily P&L relative to yesterday's value (today's value minus today's move)."""
    return percent_of(daily_pnl, total_value - daily_pnl)


@dataclass(frozen=True)
class HoldingPnL:
    """Valuation of one holding; monetary fields in the portfolio base currency."""

    holding_id: int
    symbol: str
    name: str
    asset_type: AssetType
    currency: str  # Native currency of the holding's market
    quantity: Decimal
    average_cost: Decimal  # Native, per unit
    effective_price: Decimal  # Native, per unit
    previous_close: Decimal  # Native, per unit
    market_state: Optional[MarketState]
    fx_rate: Decimal  # Native -> portfolio base
    market_value: Decimal
    cost_basis: Decimal
    daily_pnl: Decimal
    realized_pnl: Decimal
    total_dividends: Decimal

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.market_value - self.cost_basis

    @property
    def unrealized_pnl_percent(self) -> float:
        if self.cost_basis == ZERO:
            return 0.0
        return percent_of(self.unrealized_pnl, self.cost_basis)

    @property
    def daily_pnl_percent(self) -> float:
        return daily_percent(self.daily_pnl, self.market_value)


@dataclass(frozen=True)
class PortfolioPnL:
    """Valuation of one portfolio in its base currency."""

    portfolio_id: int
    name: str
    base_currency: str
    total_value: Decimal
    total_cost: Decimal
    daily_pnl: Decimal
    holdings: tuple[HoldingPnL, ...] = ()
    missing_quotes: tuple[str, ...] = ()

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.total_value - self.total_cost

    @property
    def unrealized_pnl_percent(self) -> float:
        if self.total_cost == ZERO:
            return 0.0
        return percent_of(self.unrealized_pnl, self.total_cost)

    @property
    def daily_pnl_percent(self) -> float:
        return daily_percent(self.daily_pnl, self.total_value)


@dataclass(frozen=True)
class ValuationOutcome:
    """Either a PortfolioPnL or the error that prevented it."""

    portfolio: PortfolioLedger
    pnl: Optional[PortfolioPnL] = None
    error: Optional[GaindayError] = None

    @property
    def ok(self) -> bool:
        return self.pnl is not None


@dataclass(frozen=True)
class PortfolioContribution:
    """A portfolio's totals converted into the reporting currency."""

    pnl: PortfolioPnL
    fx_rate: Decimal  # Portfolio base -> reporting
    total_value: Decimal
    total_cost: Decimal
    daily_pnl: Decimal

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.total_value - self.total_cost

    @property
    def daily_pnl_percent(self) -> float:
        return daily_percent(self.daily_pnl, self.total_value)


@dataclass(frozen=True)
class OverallPnL:
    """All successfully valued portfolios combined in the reporting currency."""

    currency: str
    total_value: Decimal = ZERO
    total_cost: Decimal = ZERO
    daily_pnl: Decimal = ZERO
    contributions: tuple[PortfolioContribution, ...] = ()
    failures: tuple[ValuationOutcome, ...] = ()

    @property
    def unrealized_pnl(self) -> Decimal:
        return self.total_value - self.total_cost

    @property
    def unrealized_pnl_percent(self) -> float:
        if self.total_cost == ZERO:
            return 0.0
        return percent_of(self.unrealized_pnl, self.total_cost)

    @property
    def daily_pnl_percent(self) -> float:
        return daily_percent(self.daily_pnl, self.total_value)

    @property
    def missing_quotes(self) -> list[str]:
        symbols: list[str] = []
        for contribution in self.contributions:
            for symbol in contribution.pnl.missing_quotes:
                if symbol not in symbols:
                    symbols.append(symbol)
        return symbols


def valuate_holding(
    holding: HoldingLedger,
    basis: CostBasis,
    quote: PriceQuote,
    fx_rate: Decimal,
) -> HoldingPnL:
    """Value one holding given its replayed cost basis and the native -> base rate."""
    price = quote.effective_price
    previous_close = quote.reference_close
    quantity = basis.quantity

    return HoldingPnL(
        holding_id=holding.holding_id,
        symbol=holding.symbol,
        name=holding.name,
        asset_type=holding.asset_type,
        currency=holding.currency,
        quantity=quantity,
        average_cost=basis.average_cost,
        effective_price=price,
        previous_close=previous_close,
        market_state=quote.market_state,
        fx_rate=fx_rate,
        market_value=price * quantity * fx_rate,
        cost_basis=basis.total_cost * fx_rate,
        daily_pnl=(price - previous_close) * quantity * fx_rate,
        realized_pnl=basis.realized_pnl * fx_rate,
        total_dividends=basis.total_dividends * fx_rate,
    )


def valuate(
    portfolio: PortfolioLedger,
    quotes: Mapping[str, PriceQuote],
    rates: RateTable,
) -> PortfolioPnL:
    """
    Value a portfolio in its base currency.

    Holdings with no open quantity are skipped. Holdings with no quote are
    skipped and their symbols listed in ``missing_quotes``.

    Raises:
        MissingRateError: If a holding's currency cannot be converted to
            the portfolio base currency.
    """
    base = portfolio.base_currency.value
    valued: list[HoldingPnL] = []
    missing: list[str] = []

    for holding in portfolio.holdings:
        basis = cost_basis_for(holding)
        if basis.quantity <= ZERO:
            continue

        quote = quotes.get(holding.symbol)
        if quote is None:
            logger.warning(f"No quote for {holding.symbol} in '{portfolio.name}', excluded from valuation")
            missing.append(holding.symbol)
            continue

        fx = rate(holding.currency, base, rates)
        valued.append(valuate_holding(holding, basis, quote, fx))

    return PortfolioPnL(
        portfolio_id=portfolio.portfolio_id,
        name=portfolio.name,
        base_currency=base,
        total_value=quantize_money(sum((h.market_value for h in valued), ZERO)),
        total_cost=quantize_money(sum((h.cost_basis for h in valued), ZERO)),
        daily_pnl=quantize_money(sum((h.daily_pnl for h in valued), ZERO)),
        holdings=tuple(valued),
        missing_quotes=tuple(missing),
    )


def valuate_all(
    portfolios: Iterable[PortfolioLedger],
    quotes: Mapping[str, PriceQuote],
    rates: RateTable,
) -> list[ValuationOutcome]:
    """Value every portfolio independently; one failure never blocks another."""
    outcomes = []
    for portfolio in portfolios:
        try:
            outcomes.append(ValuationOutcome(portfolio=portfolio, pnl=valuate(portfolio, quotes, rates)))
        except MissingRateError as e:
            logger.warning(f"Valuation of '{portfolio.name}' failed: {e}")
            outcomes.append(ValuationOutcome(portfolio=portfolio, error=e))
    return outcomes


def aggregate_overall(
    outcomes: Iterable[ValuationOutcome],
    reporting_currency: str,
    rates: RateTable,
) -> OverallPnL:
    """
    Combine portfolio valuations in the reporting currency.

    Each portfolio's totals are converted once with its base -> reporting
    rate. Failed outcomes, and portfolios whose base -> reporting rate is
    missing, are listed in ``failures`` and excluded from the totals.
    """
    contributions: list[PortfolioContribution] = []
    failures: list[ValuationOutcome] = []

    for outcome in outcomes:
        if not outcome.ok:
            failures.append(outcome)
            continue
        pnl = outcome.pnl
        try:
            fx = rate(pnl.base_currency, reporting_currency, rates)
        except MissingRateError as e:
            logger.warning(f"Cannot include '{pnl.name}' in overall total: {e}")
            failures.append(ValuationOutcome(portfolio=outcome.portfolio, error=e))
            continue
        contributions.append(
            PortfolioContribution(
                pnl=pnl,
                fx_rate=fx,
                total_value=quantize_money(pnl.total_value * fx),
                total_cost=quantize_money(pnl.total_cost * fx),
                daily_pnl=quantize_money(pnl.daily_pnl * fx),
            )
        )

    return OverallPnL(
        currency=reporting_currency,
        total_value=sum((c.total_value for c in contributions), ZERO),
        total_cost=sum((c.total_cost for c in contributions), ZERO),
        daily_pnl=sum((c.daily_pnl for c in contributions), ZERO),
        contributions=tuple(contributions),
        failures=tuple(failures),
    )
