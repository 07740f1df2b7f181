"""
NISA quota usage.

Usage is derived from the ledgers of portfolios tagged as NISA accounts:

- Annual usage: buy notional (quantity * price, fee excluded) dated in the
  as-of year, per bucket.
- Lifetime usage: all-time buy notional minus the notional of sells dated
  in years strictly before the as-of year. Capacity freed by a sale only
  becomes available again from the following year.

Remaining amounts are clamped to [0, limit] and ratios to [0, 1].
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from gainday.core.ledger.enums import AccountType, TransactionType
from gainday.core.ledger.ledger import PortfolioLedger
from gainday.core.quota.constants import (
    GROWTH_ANNUAL_LIMIT,
    GROWTH_LIFETIME_LIMIT,
    LIFETIME_LIMIT,
    TSUMITATE_ANNUAL_LIMIT,
)

ZERO = Decimal("0")


def _remaining(limit: Decimal, used: Decimal) -> Decimal:
    return min(max(limit - used, ZERO), limit)


def _ratio(used: Decimal, limit: Decimal) -> float:
    if limit <= ZERO:
        return 0.0
    return min(max(float(used / limit), 0.0), 1.0)


@dataclass(frozen=True)
class QuotaLimits:
    """Statutory limits, overridable for tests or future rule changes."""

    tsumitate_annual: Decimal = TSUMITATE_ANNUAL_LIMIT
    growth_annual: Decimal = GROWTH_ANNUAL_LIMIT
    lifetime: Decimal = LIFETIME_LIMIT
    growth_lifetime: Decimal = GROWTH_LIFETIME_LIMIT

    @property
    def total_annual(self) -> Decimal:
        return self.tsumitate_annual + self.growth_annual

    def annual_for(self, account_type: AccountType) -> Decimal:
        if account_type is AccountType.NISA_TSUMITATE:
            return self.tsumitate_annual
        if account_type is AccountType.NISA_GROWTH:
            return self.growth_annual
        return ZERO


@dataclass(frozen=True)
class BucketUsage:
    """Usage of one NISA bucket."""

    account_type: AccountType
    annual_used: Decimal
    annual_limit: Decimal
    lifetime_used: Decimal
    lifetime_limit: Decimal
    lifetime_remaining: Decimal

    @property
    def annual_remaining(self) -> Decimal:
        return _remaining(self.annual_limit, self.annual_used)

    @property
    def annual_ratio(self) -> float:
        return _ratio(self.annual_used, self.annual_limit)

    @property
    def lifetime_ratio(self) -> float:
        return _ratio(self.lifetime_used, self.lifetime_limit)


@dataclass(frozen=True)
class QuotaReport:
    """Quota usage across both NISA buckets for one year."""

    year: int
    tsumitate: BucketUsage
    growth: BucketUsage
    limits: QuotaLimits = field(default_factory=QuotaLimits)

    @property
    def total_annual_used(self) -> Decimal:
        return self.tsumitate.annual_used + self.growth.annual_used

    @property
    def total_annual_limit(self) -> Decimal:
        return self.limits.total_annual

    @property
    def total_annual_remaining(self) -> Decimal:
        return _remaining(self.total_annual_limit, self.total_annual_used)

    @property
    def total_annual_ratio(self) -> float:
        return _ratio(self.total_annual_used, self.total_annual_limit)

    @property
    def lifetime_used(self) -> Decimal:
        return self.tsumitate.lifetime_used + self.growth.lifetime_used

    @property
    def lifetime_limit(self) -> Decimal:
        return self.limits.lifetime

    @property
    def lifetime_remaining(self) -> Decimal:
        return _remaining(self.lifetime_limit, self.lifetime_used)

    @property
    def lifetime_ratio(self) -> float:
        return _ratio(self.lifetime_used, self.lifetime_limit)


def _bucket_totals(
    portfolios: Iterable[PortfolioLedger],
    account_type: AccountType,
    year: int,
) -> tuple[Decimal, Decimal]:
    """(annual_used, lifetime_used) for one bucket."""
    annual = ZERO
    bought = ZERO
    recovered = ZERO

    for portfolio in portfolios:
        if portfolio.account_type is not account_type:
            continue
        for holding in portfolio.holdings:
            for entry in holding.entries:
                if entry.kind is TransactionType.BUY:
                    bought += entry.notional
                    if entry.date.year == year:
                        annual += entry.notional
                elif entry.kind is TransactionType.SELL and entry.date.year < year:
                    recovered += entry.notional

    return annual, max(bought - recovered, ZERO)


def compute_quota(
    portfolios: Iterable[PortfolioLedger],
    as_of_year: int,
    limits: QuotaLimits = QuotaLimits(),
) -> QuotaReport:
    """
    Compute NISA quota usage as of ``as_of_year``.

    Portfolios tagged ``general`` are ignored.
    """
    portfolios = list(portfolios)

    tsumitate_annual, tsumitate_lifetime = _bucket_totals(
        portfolios, AccountType.NISA_TSUMITATE, as_of_year
    )
    growth_annual, growth_lifetime = _bucket_totals(
        portfolios, AccountType.NISA_GROWTH, as_of_year
    )

    lifetime_remaining = _remaining(limits.lifetime, tsumitate_lifetime + growth_lifetime)
    growth_remaining = min(
        _remaining(limits.growth_lifetime, growth_lifetime),
        lifetime_remaining,
    )

    return QuotaReport(
        year=as_of_year,
        tsumitate=BucketUsage(
            account_type=AccountType.NISA_TSUMITATE,
            annual_used=tsumitate_annual,
            annual_limit=limits.tsumitate_annual,
            lifetime_used=tsumitate_lifetime,
            lifetime_limit=limits.lifetime,
            lifetime_remaining=lifetime_remaining,
        ),
        growth=BucketUsage(
            account_type=AccountType.NISA_GROWTH,
            annual_used=growth_annual,
            annual_limit=limits.growth_annual,
            lifetime_used=growth_lifetime,
            lifetime_limit=limits.growth_lifetime,
            lifetime_remaining=growth_remaining,
        ),
        limits=limits,
    )
