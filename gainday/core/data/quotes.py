"""
Price quote value object.

A PriceQuote is what the market data provider hands to the valuator: the
regular session prices plus whatever extended-hours prices the exchange
published, and the session state that decides which one counts.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from gainday.core.ledger.enums import MarketState

PRE_SESSION_STATES = (MarketState.PRE, MarketState.PREPRE)
POST_SESSION_STATES = (MarketState.POST, MarketState.POSTPOST)


@dataclass(frozen=True)
class PriceQuote:
    """Latest market data for one symbol."""

    symbol: str
    close: Decimal  # Regular-session price (current or last close)
    currency: str
    as_of: Optional[date] = None
    open: Optional[Decimal] = None
    high: Optional[Decimal] = None
    low: Optional[Decimal] = None
    previous_close: Optional[Decimal] = None
    pre_market_price: Optional[Decimal] = None
    post_market_price: Optional[Decimal] = None
    market_state: Optional[MarketState] = None

    @property
    def effective_price(self) -> Decimal:
        """
        Price used for valuation.

        PRE/PREPRE use the pre-market price and POST/POSTPOST the post-market
        price, each falling back to close when absent. Any other state, or
        no state at all, uses close.
        """
        if self.market_state in PRE_SESSION_STATES and self.pre_market_price is not None:
            return self.pre_market_price
        if self.market_state in POST_SESSION_STATES and self.post_market_price is not None:
            return self.post_market_price
        return self.close

    @property
    def reference_close(self) -> Decimal:
        """Baseline for daily P&L: previous close, else the regular-session close."""
        if self.previous_close is not None:
            return self.previous_close
        return self.close
