"""NISA tax-free quota tracking."""

from gainday.core.quota.engine import BucketUsage, QuotaLimits, QuotaReport, compute_quota

__all__ = ["BucketUsage", "QuotaLimits", "QuotaReport", "compute_quota"]
