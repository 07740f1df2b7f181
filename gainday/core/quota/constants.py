"""
NISA statutory limits (JPY).

Single source of truth for the default limits. Config may override them
through GAINDAY_NISA_* environment variables.
"""

from decimal import Decimal

# Annual contribution limits per bucket
TSUMITATE_ANNUAL_LIMIT = Decimal("1200000")
GROWTH_ANNUAL_LIMIT = Decimal("2400000")
TOTAL_ANNUAL_LIMIT = TSUMITATE_ANNUAL_LIMIT + GROWTH_ANNUAL_LIMIT

# Lifetime limit shared by both buckets, with a sub-cap for the growth bucket
LIFETIME_LIMIT = Decimal("18000000")
GROWTH_LIFETIME_LIMIT = Decimal("12000000")

# Usage ratio thresholds for display
RATIO_WARNING = 0.7
RATIO_CRITICAL = 0.9
