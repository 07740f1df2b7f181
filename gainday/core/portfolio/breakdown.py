"""
Snapshot detail blobs: asset-class breakdown and per-holding daily P&L.

Both are stored as canonical JSON text on the snapshot row. Amounts are
written as decimal strings and keys are sorted, so encoding the same
entries always yields the same bytes and decoding restores them exactly.
"""

import json
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

from gainday.core.currency import quantize_money
from gainday.core.data.exceptions import MalformedBreakdownError, UnknownEnumValueError
from gainday.core.ledger.enums import AssetType
from gainday.core.portfolio.valuation import HoldingPnL

ZERO = Decimal("0")


@dataclass(frozen=True)
class AssetBreakdown:
    """Aggregated figures for one asset class, tagged with its native currency."""

    asset_type: AssetType
    currency: str  # Native currency of the grouped holdings
    value: Decimal  # In the snapshot currency
    cost: Decimal
    pnl: Decimal

    def to_dict(self) -> dict:
        return {
            "asset_type": self.asset_type.value,
            "cost": str(self.cost),
            "currency": self.currency,
            "pnl": str(self.pnl),
            "value": str(self.value),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AssetBreakdown":
        return cls(
            asset_type=AssetType.parse(data["asset_type"]),
            currency=str(data["currency"]),
            value=Decimal(data["value"]),
            cost=Decimal(data["cost"]),
            pnl=Decimal(data["pnl"]),
        )


@dataclass(frozen=True)
class HoldingDailyPnL:
    """One holding's move on the snapshot day, in the snapshot currency."""

    symbol: str
    name: str
    market_value: Decimal
    daily_pnl: Decimal
    daily_pnl_percent: float

    def to_dict(self) -> dict:
        return {
            "daily_pnl": str(self.daily_pnl),
            "daily_pnl_percent": self.daily_pnl_percent,
            "market_value": str(self.market_value),
            "name": self.name,
            "symbol": self.symbol,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HoldingDailyPnL":
        return cls(
            symbol=str(data["symbol"]),
            name=str(data["name"]),
            market_value=Decimal(data["market_value"]),
            daily_pnl=Decimal(data["daily_pnl"]),
            daily_pnl_percent=float(data["daily_pnl_percent"]),
        )


def build_breakdown(holdings: Iterable[tuple[HoldingPnL, Decimal]]) -> list[AssetBreakdown]:
    """
    Group valued holdings by (asset type, native currency).

    Args:
        holdings: (holding, rate) pairs; ``rate`` converts the holding's
            portfolio-base figures into the snapshot currency.

    Returns:
        Entries ordered by asset type then currency.
    """
    groups: "OrderedDict[tuple[AssetType, str], list[Decimal]]" = OrderedDict()
    for holding, fx in holdings:
        key = (holding.asset_type, holding.currency)
        totals = groups.setdefault(key, [ZERO, ZERO])
        totals[0] += holding.market_value * fx
        totals[1] += holding.cost_basis * fx

    order = list(AssetType)
    entries = []
    for (asset_type, currency), (value, cost) in sorted(
        groups.items(), key=lambda item: (order.index(item[0][0]), item[0][1])
    ):
        value = quantize_money(value)
        cost = quantize_money(cost)
        entries.append(
            AssetBreakdown(asset_type=asset_type, currency=currency, value=value, cost=cost, pnl=value - cost)
        )
    return entries


def build_holding_pnls(holdings: Iterable[tuple[HoldingPnL, Decimal]]) -> list[HoldingDailyPnL]:
    """Per-holding daily moves converted into the snapshot currency, largest value first."""
    entries = [
        HoldingDailyPnL(
            symbol=holding.symbol,
            name=holding.name,
            market_value=quantize_money(holding.market_value * fx),
            daily_pnl=quantize_money(holding.daily_pnl * fx),
            daily_pnl_percent=round(holding.daily_pnl_percent, 4),
        )
        for holding, fx in holdings
    ]
    entries.sort(key=lambda e: (-e.market_value, e.symbol))
    return entries


def _encode(items: list[dict]) -> str:
    return json.dumps(items, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _decode(payload: str, factory) -> list:
    if payload is None or payload == "":
        return []
    try:
        raw = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedBreakdownError(f"invalid JSON ({e})", payload) from e
    if not isinstance(raw, list):
        raise MalformedBreakdownError("expected a JSON list", payload)
    try:
        return [factory(item) for item in raw]
    except (KeyError, TypeError, ValueError, InvalidOperation, UnknownEnumValueError) as e:
        raise MalformedBreakdownError(f"bad entry ({e!r})", payload) from e


def encode_breakdown(entries: Iterable[AssetBreakdown]) -> str:
    return _encode([e.to_dict() for e in entries])


def decode_breakdown(payload: str) -> list[AssetBreakdown]:
    """
    Decode a breakdown blob.

    Raises:
        MalformedBreakdownError: If the payload is not a list of valid entries.
    """
    return _decode(payload, AssetBreakdown.from_dict)


def encode_holding_pnls(entries: Iterable[HoldingDailyPnL]) -> str:
    return _encode([e.to_dict() for e in entries])


def decode_holding_pnls(payload: str) -> list[HoldingDailyPnL]:
    """
    Decode a per-holding daily P&L blob.

    Raises:
        MalformedBreakdownError: If the payload is not a list of valid entries.
    """
    return _decode(payload, HoldingDailyPnL.from_dict)
