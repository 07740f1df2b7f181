"""
Portfolio valuation, snapshot history and ledger maintenance.

Submodules are imported directly (e.g. ``gainday.core.portfolio.valuation``);
this package does not re-export them so the database models can depend on
the pure engines without an import cycle.
"""
