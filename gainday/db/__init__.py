"""
Database module for Gainday.

Provides SQLModel definitions and connection management for the ledger and
snapshot history.
"""

from gainday.db.database import get_engine, get_session, init_db, reset_engine
from gainday.db.models import DailySnapshot, Holding, Portfolio, Transaction

__all__ = [
    # Models
    "Portfolio",
    "Holding",
    "Transaction",
    "DailySnapshot",
    # Database
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
]
