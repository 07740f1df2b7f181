"""
Explicit data migrations for legacy stored values.

Tag columns are parsed strictly at read time, so values written by older
versions must be rewritten here before they can be loaded.
"""

import logging

from sqlmodel import col, select

from gainday.db.database import get_session
from gainday.db.models import Portfolio

logger = logging.getLogger(__name__)

# Legacy value -> current value
ACCOUNT_TYPE_RENAMES = {"normal": "general"}


def pending_account_type_migrations() -> int:
    """Number of portfolios still carrying a legacy account type."""
    with get_session() as session:
        rows = session.exec(
            select(Portfolio).where(col(Portfolio.account_type).in_(list(ACCOUNT_TYPE_RENAMES)))
        ).all()
        return len(rows)


def migrate_account_types() -> int:
    """
    Rewrite legacy account type tags.

    Returns:
        Number of portfolios updated.
    """
    with get_session() as session:
        rows = session.exec(
            select(Portfolio).where(col(Portfolio.account_type).in_(list(ACCOUNT_TYPE_RENAMES)))
        ).all()
        for portfolio in rows:
            new_type = ACCOUNT_TYPE_RENAMES[portfolio.account_type]
            logger.info(
                f"Migrating portfolio '{portfolio.name}' account type "
                f"'{portfolio.account_type}' -> '{new_type}'"
            )
            portfolio.account_type = new_type
            session.add(portfolio)
        return len(rows)


def run_migrations() -> dict[str, int]:
    """Run every data migration and report how many rows each touched."""
    return {"account_type": migrate_account_types()}
