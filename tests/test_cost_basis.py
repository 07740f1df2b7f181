"""Tests for weighted-average cost basis replay."""

from datetime import date
from decimal import Decimal

from gainday.core.ledger.cost_basis import (
    CostBasis,
    compute_cost_basis,
    cost_basis_as_of,
    cost_basis_for,
    find_negative_position,
)
from tests.mocks import entry, holding


class TestComputeCostBasis:
    """Tests for compute_cost_basis."""

    def test_empty_ledger_is_zero(self):
        """An empty history yields zeros."""
        assert compute_cost_basis([]) == CostBasis()

    def test_single_buy(self):
        basis = compute_cost_basis([entry(1, "buy", date(2024, 1, 2), "10", "180")])

        assert basis.quantity == Decimal("10")
        assert basis.average_cost == Decimal("180")
        assert basis.total_cost == Decimal("1800")
        assert basis.realized_pnl == 0

    def test_two_buys_weighted_average(self):
        """Second buy re-weights the average cost."""
        basis = compute_cost_basis(
            [
                entry(1, "buy", date(2024, 1, 2), "10", "100"),
                entry(2, "buy", date(2024, 1, 3), "30", "200"),
            ]
        )

        assert basis.quantity == Decimal("40")
        assert basis.average_cost == Decimal("175")

    def test_buy_fee_raises_average_cost(self):
        basis = compute_cost_basis([entry(1, "buy", date(2024, 1, 2), "10", "100", fee="50")])

        assert basis.average_cost == Decimal("105")

    def test_sell_realizes_pnl_and_keeps_average(self):
        """Sells realize gains and leave the average cost unchanged."""
        basis = compute_cost_basis(
            [
                entry(1, "buy", date(2024, 1, 2), "10", "100"),
                entry(2, "sell", date(2024, 2, 1), "4", "130", fee="10"),
            ]
        )

        assert basis.quantity == Decimal("6")
        assert basis.average_cost == Decimal("100")
        # 4 * 130 - 4 * 100 - 10
        assert basis.realized_pnl == Decimal("110")

    def test_dividends_accumulate_without_touching_position(self):
        basis = compute_cost_basis(
            [
                entry(1, "buy", date(2024, 1, 2), "10", "100"),
                entry(2, "dividend", date(2024, 3, 1), "10", "2.5"),
                entry(3, "dividend", date(2024, 6, 1), "10", "2.5"),
            ]
        )

        assert basis.quantity == Decimal("10")
        assert basis.average_cost == Decimal("100")
        assert basis.total_dividends == Decimal("50")

    def test_replay_orders_by_date_not_input_order(self):
        """A sell listed before its buy is still replayed after it."""
        entries = [
            entry(2, "sell", date(2024, 3, 1), "5", "150"),
            entry(1, "buy", date(2024, 1, 1), "10", "100"),
        ]

        basis = compute_cost_basis(entries)

        assert basis.quantity == Decimal("5")
        assert basis.realized_pnl == Decimal("250")

    def test_same_day_ties_break_on_entry_id(self):
        """Same-day buys apply in insertion order."""
        basis = compute_cost_basis(
            [
                entry(3, "sell", date(2024, 1, 1), "10", "120"),
                entry(1, "buy", date(2024, 1, 1), "10", "100"),
                entry(2, "buy", date(2024, 1, 1), "10", "110"),
            ]
        )

        assert basis.quantity == Decimal("10")
        assert basis.average_cost == Decimal("105")
        assert basis.realized_pnl == Decimal("150")

    def test_full_exit_then_rebuy_starts_fresh_average(self):
        basis = compute_cost_basis(
            [
                entry(1, "buy", date(2024, 1, 1), "10", "100"),
                entry(2, "sell", date(2024, 2, 1), "10", "120"),
                entry(3, "buy", date(2024, 3, 1), "5", "200"),
            ]
        )

        assert basis.quantity == Decimal("5")
        assert basis.average_cost == Decimal("200")
        assert basis.realized_pnl == Decimal("200")

    def test_fractional_quantities_stay_exact(self):
        basis = compute_cost_basis(
            [
                entry(1, "buy", date(2024, 1, 1), "0.1", "0.3"),
                entry(2, "buy", date(2024, 1, 2), "0.2", "0.3"),
            ]
        )

        assert basis.quantity == Decimal("0.3")
        assert basis.average_cost == Decimal("0.3")


class TestHoldingHelpers:
    """Tests for the HoldingLedger wrappers."""

    def test_cost_basis_for_holding(self, aapl_ledger):
        basis = cost_basis_for(aapl_ledger)

        assert basis.quantity == Decimal("10")
        assert basis.average_cost == Decimal("180")

    def test_cost_basis_as_of_ignores_later_entries(self):
        ledger = holding(
            1,
            "7203.T",
            [
                entry(1, "buy", date(2024, 1, 5), "100", "2500"),
                entry(2, "buy", date(2024, 6, 5), "100", "3500"),
            ],
        )

        assert cost_basis_as_of(ledger, date(2024, 1, 4)).quantity == 0
        assert cost_basis_as_of(ledger, date(2024, 3, 1)).average_cost == Decimal("2500")
        assert cost_basis_as_of(ledger, date(2024, 6, 5)).average_cost == Decimal("3000")


class TestFindNegativePosition:
    """Tests for negative running quantity detection."""

    def test_never_short(self):
        entries = [
            entry(1, "buy", date(2024, 1, 1), "10", "100"),
            entry(2, "sell", date(2024, 2, 1), "10", "100"),
        ]

        assert find_negative_position(entries) is None

    def test_oversell_is_reported(self):
        entries = [
            entry(1, "buy", date(2024, 1, 1), "10", "100"),
            entry(2, "sell", date(2024, 2, 1), "15", "100"),
        ]

        breach = find_negative_position(entries)

        assert breach is not None
        bad_entry, quantity = breach
        assert bad_entry.entry_id == 2
        assert quantity == Decimal("-5")

    def test_backdated_sell_before_buy_is_reported(self):
        """A sell dated before the buy goes short on its own date."""
        entries = [
            entry(1, "buy", date(2024, 3, 1), "10", "100"),
            entry(2, "sell", date(2024, 2, 1), "5", "100"),
        ]

        bad_entry, quantity = find_negative_position(entries)

        assert bad_entry.entry_id == 2
        assert quantity == Decimal("-5")

    def test_dividends_do_not_count(self):
        entries = [entry(1, "dividend", date(2024, 1, 1), "10", "1")]

        assert find_negative_position(entries) is None
