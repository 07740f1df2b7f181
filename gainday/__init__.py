"""
Gainday - multi-currency portfolio valuation and ledger reconciliation.

Replays per-holding transaction ledgers into cost basis, values portfolios
against live quotes and exchange rates, persists one snapshot per scope and
day, and tracks NISA tax-free quota usage.
"""

__version__ = "0.1.0"
