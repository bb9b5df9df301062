"""
tests/test_allocation_engine.py
-------------------------------
Unit tests for AllocationEngine.

Test coverage:
    set_allocation: redistribution, locks, clamping, rejections
    add / remove (including the forced-receiver fallback)
    toggle_lock / toggle_disable (including restore on enable)
    equal_weight in both modes
    apply() dispatch
    Unknown tickers raise, business-rule rejections return the same object
"""

import unittest

from stackfolio.allocation_engine import AllocationEngine, allocation_changes
from stackfolio.enums import EqualWeightMode, Operation
from stackfolio.errors import TickerNotFoundError
from stackfolio.models import Holding, Portfolio
from stackfolio.precision import total_basis_points


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _portfolio(*holdings) -> Portfolio:
    """``_portfolio(("A", 60), Holding("B", 40, locked=True))``"""
    built = {}
    for item in holdings:
        holding = item if isinstance(item, Holding) else Holding(item[0], float(item[1]))
        built[holding.ticker] = holding
    return Portfolio(name="Test", holdings=built, created_at=0)


def _pcts(portfolio: Portfolio) -> dict:
    return portfolio.percentages()


# ===========================================================================
# 1. set_allocation
# ===========================================================================

class TestSetAllocation(unittest.TestCase):

    def test_add_then_set_scenario(self):
        p = AllocationEngine.add_ticker(Portfolio(name="Test"), "A")
        p = AllocationEngine.add_ticker(p, "B")
        p = AllocationEngine.set_allocation(p, "B", 30)
        self.assertEqual(_pcts(p), {"A": 70.0, "B": 30.0})

    def test_proportional_redistribution(self):
        p = _portfolio(("A", 50), ("B", 30), ("C", 20))
        result = AllocationEngine.set_allocation(p, "A", 0)
        # 100% split 30:20 between B and C
        self.assertEqual(_pcts(result), {"A": 0.0, "B": 60.0, "C": 40.0})

    def test_locked_holding_unchanged(self):
        p = _portfolio(("A", 50), Holding("B", 30.0, locked=True), ("C", 20))
        result = AllocationEngine.set_allocation(p, "A", 60)
        self.assertEqual(result.holdings["B"].percentage, 30.0)
        self.assertTrue(result.holdings["B"].locked)
        self.assertEqual(_pcts(result), {"A": 60.0, "B": 30.0, "C": 10.0})

    def test_locked_amount_cannot_be_honoured_rejects(self):
        p = _portfolio(("A", 50), Holding("B", 30.0, locked=True), ("C", 20))
        result = AllocationEngine.set_allocation(p, "A", 80)
        self.assertIs(result, p)
        self.assertEqual(_pcts(result), {"A": 50.0, "B": 30.0, "C": 20.0})

    def test_exactly_filling_available_room_accepted(self):
        p = _portfolio(("A", 50), Holding("B", 30.0, locked=True), ("C", 20))
        result = AllocationEngine.set_allocation(p, "A", 70)
        self.assertEqual(_pcts(result), {"A": 70.0, "B": 30.0, "C": 0.0})

    def test_same_value_is_noop(self):
        p = _portfolio(("A", 60), ("B", 40))
        self.assertIs(AllocationEngine.set_allocation(p, "A", 60), p)
        self.assertIs(AllocationEngine.set_allocation(p, "A", 60.001), p)

    def test_locked_or_disabled_target_rejected(self):
        p = _portfolio(Holding("A", 60.0, locked=True), ("B", 40), Holding("C", 0.0, disabled=True))
        self.assertIs(AllocationEngine.set_allocation(p, "A", 10), p)
        self.assertIs(AllocationEngine.set_allocation(p, "C", 10), p)

    def test_no_adjustable_holding_rejected(self):
        p = _portfolio(("A", 60), Holding("B", 40.0, locked=True))
        self.assertIs(AllocationEngine.set_allocation(p, "A", 50), p)

    def test_single_holding_cannot_change(self):
        p = _portfolio(("A", 100))
        self.assertIs(AllocationEngine.set_allocation(p, "A", 50), p)

    def test_clamped_to_range(self):
        p = _portfolio(("A", 60), ("B", 40))
        self.assertEqual(_pcts(AllocationEngine.set_allocation(p, "A", 150)), {"A": 100.0, "B": 0.0})
        self.assertEqual(_pcts(AllocationEngine.set_allocation(p, "A", -5)), {"A": 0.0, "B": 100.0})

    def test_nan_rejected(self):
        p = _portfolio(("A", 60), ("B", 40))
        self.assertIs(AllocationEngine.set_allocation(p, "A", float("nan")), p)

    def test_equal_split_when_receivers_at_zero(self):
        p = _portfolio(("A", 100), ("B", 0), ("C", 0))
        result = AllocationEngine.set_allocation(p, "A", 40)
        self.assertEqual(_pcts(result), {"A": 40.0, "B": 30.0, "C": 30.0})

    def test_remainder_to_last(self):
        p = _portfolio(("A", 100), ("B", 0), ("C", 0), ("D", 0))
        result = AllocationEngine.set_allocation(p, "A", 0)
        self.assertEqual(_pcts(result), {"A": 0.0, "B": 33.33, "C": 33.33, "D": 33.34})
        self.assertEqual(total_basis_points(result.holdings.values()), 10_000)

    def test_unknown_ticker_raises(self):
        p = _portfolio(("A", 100))
        with self.assertRaises(TickerNotFoundError):
            AllocationEngine.set_allocation(p, "ZZZ", 10)
        with self.assertRaises(KeyError):
            AllocationEngine.set_allocation(p, "ZZZ", 10)

    def test_input_not_mutated(self):
        p = _portfolio(("A", 50), ("B", 50))
        AllocationEngine.set_allocation(p, "A", 20)
        self.assertEqual(_pcts(p), {"A": 50.0, "B": 50.0})

    def test_changes_list_rebalanced_holdings(self):
        p = _portfolio(("A", 50), Holding("B", 30.0, locked=True), ("C", 20))
        self.assertEqual(
            allocation_changes(p, AllocationEngine.set_allocation(p, "A", 60)),
            [("A", 50.0, 60.0), ("C", 20.0, 10.0)],
        )
        self.assertEqual(allocation_changes(p, AllocationEngine.set_allocation(p, "A", 90)), [])


# ===========================================================================
# 2. add / remove
# ===========================================================================

class TestAddRemove(unittest.TestCase):

    def test_first_ticker_gets_everything(self):
        p = AllocationEngine.add_ticker(Portfolio(), "A")
        self.assertEqual(_pcts(p), {"A": 100.0})

    def test_later_ticker_starts_at_zero(self):
        p = AllocationEngine.add_ticker(_portfolio(("A", 100)), "B")
        self.assertEqual(_pcts(p), {"A": 100.0, "B": 0.0})
        self.assertEqual(p.tickers, ["A", "B"])

    def test_add_existing_rejected(self):
        p = _portfolio(("A", 100))
        self.assertIs(AllocationEngine.add_ticker(p, "A"), p)

    def test_remove_redistributes_with_remainder_to_last(self):
        p = _portfolio(("A", 33.3), ("B", 33.3), ("C", 33.4))
        result = AllocationEngine.remove_ticker(p, "C")
        self.assertEqual(_pcts(result), {"A": 50.0, "B": 50.0})
        self.assertEqual(total_basis_points(result.holdings.values()), 10_000)

    def test_remove_proportional(self):
        p = _portfolio(("A", 60), ("B", 20), ("C", 20))
        result = AllocationEngine.remove_ticker(p, "C")
        self.assertEqual(_pcts(result), {"A": 75.0, "B": 25.0})

    def test_remove_zero_holding_plain(self):
        p = _portfolio(("A", 100), ("B", 0))
        self.assertEqual(_pcts(AllocationEngine.remove_ticker(p, "B")), {"A": 100.0})

    def test_remove_disabled_holding_plain(self):
        p = _portfolio(("A", 100), Holding("B", 0.0, disabled=True))
        self.assertEqual(_pcts(AllocationEngine.remove_ticker(p, "B")), {"A": 100.0})

    def test_remove_last_holding_rejected(self):
        p = _portfolio(("A", 100))
        self.assertIs(AllocationEngine.remove_ticker(p, "A"), p)

    def test_remove_skips_locked_receivers(self):
        p = _portfolio(("A", 40), Holding("B", 30.0, locked=True), ("C", 30))
        result = AllocationEngine.remove_ticker(p, "A")
        self.assertEqual(_pcts(result), {"B": 30.0, "C": 70.0})

    def test_remove_forces_first_locked_holding_to_unlock(self):
        p = _portfolio(("A", 50), Holding("B", 30.0, locked=True), Holding("C", 20.0, locked=True))
        result = AllocationEngine.remove_ticker(p, "A")
        self.assertEqual(_pcts(result), {"B": 80.0, "C": 20.0})
        self.assertFalse(result.holdings["B"].locked)
        self.assertTrue(result.holdings["C"].locked)

    def test_remove_prefers_enabled_over_disabled_receiver(self):
        p = _portfolio(("A", 50), Holding("B", 0.0, disabled=True), Holding("C", 50.0, locked=True))
        result = AllocationEngine.remove_ticker(p, "A")
        self.assertEqual(_pcts(result), {"B": 0.0, "C": 100.0})
        self.assertTrue(result.holdings["B"].disabled)

    def test_remove_forces_first_disabled_holding_to_enable(self):
        p = _portfolio(("A", 100), Holding("B", 0.0, disabled=True), Holding("C", 0.0, disabled=True))
        result = AllocationEngine.remove_ticker(p, "A")
        self.assertEqual(_pcts(result), {"B": 100.0, "C": 0.0})
        self.assertFalse(result.holdings["B"].disabled)
        self.assertFalse(result.holdings["B"].locked)
        self.assertTrue(result.holdings["C"].disabled)

    def test_remove_unknown_raises(self):
        with self.assertRaises(TickerNotFoundError):
            AllocationEngine.remove_ticker(_portfolio(("A", 100)), "B")


# ===========================================================================
# 3. Lock / disable
# ===========================================================================

class TestLockDisable(unittest.TestCase):

    def test_toggle_lock_flips(self):
        p = _portfolio(("A", 60), ("B", 40))
        locked = AllocationEngine.toggle_lock(p, "A")
        self.assertTrue(locked.holdings["A"].locked)
        self.assertEqual(locked.holdings["A"].percentage, 60.0)
        unlocked = AllocationEngine.toggle_lock(locked, "A")
        self.assertFalse(unlocked.holdings["A"].locked)

    def test_cannot_lock_disabled(self):
        p = _portfolio(("A", 100), Holding("B", 0.0, disabled=True))
        self.assertIs(AllocationEngine.toggle_lock(p, "B"), p)

    def test_disable_scenario(self):
        p = _portfolio(("A", 60), ("B", 40))
        result = AllocationEngine.toggle_disable(p, "A")
        self.assertEqual(_pcts(result), {"A": 0.0, "B": 100.0})
        self.assertTrue(result.holdings["A"].disabled)

    def test_disable_clears_lock(self):
        p = _portfolio(Holding("A", 60.0, locked=True), ("B", 40))
        result = AllocationEngine.toggle_disable(p, "A")
        self.assertFalse(result.holdings["A"].locked)
        self.assertTrue(result.holdings["A"].disabled)

    def test_disable_without_receiver_rejected(self):
        p = _portfolio(("A", 60), Holding("B", 40.0, locked=True))
        self.assertIs(AllocationEngine.toggle_disable(p, "A"), p)

    def test_disable_last_enabled_rejected(self):
        p = _portfolio(("A", 100), Holding("B", 0.0, disabled=True))
        self.assertIs(AllocationEngine.toggle_disable(p, "A"), p)

    def test_disable_zero_holding_needs_no_receiver(self):
        p = _portfolio(Holding("A", 100.0, locked=True), ("B", 0))
        result = AllocationEngine.toggle_disable(p, "B")
        self.assertTrue(result.holdings["B"].disabled)
        self.assertEqual(result.holdings["A"].percentage, 100.0)

    def test_enable_starts_at_zero(self):
        p = _portfolio(("A", 100), Holding("B", 0.0, disabled=True))
        result = AllocationEngine.toggle_disable(p, "B")
        self.assertFalse(result.holdings["B"].disabled)
        self.assertEqual(_pcts(result), {"A": 100.0, "B": 0.0})

    def test_enable_clears_both_flags(self):
        p = _portfolio(("A", 100), Holding("B", 0.0, locked=True, disabled=True))
        result = AllocationEngine.toggle_disable(p, "B")
        self.assertFalse(result.holdings["B"].disabled)
        self.assertFalse(result.holdings["B"].locked)

    def test_enable_with_restore(self):
        p = _portfolio(("A", 60), ("B", 40))
        disabled = AllocationEngine.toggle_disable(p, "A")
        restored = AllocationEngine.toggle_disable(disabled, "A", restore_percent=60)
        self.assertEqual(_pcts(restored), {"A": 60.0, "B": 40.0})

    def test_enable_restore_rejected_stays_at_zero(self):
        p = _portfolio(Holding("A", 100.0, locked=True), Holding("B", 0.0, disabled=True))
        result = AllocationEngine.toggle_disable(p, "B", restore_percent=30)
        self.assertFalse(result.holdings["B"].disabled)
        self.assertEqual(_pcts(result), {"A": 100.0, "B": 0.0})


# ===========================================================================
# 4. Equal weight
# ===========================================================================

class TestEqualWeight(unittest.TestCase):

    def test_unlocked_only_preserves_locks(self):
        p = _portfolio(Holding("A", 50.0, locked=True), ("B", 30), ("C", 20))
        result = AllocationEngine.equal_weight(p, EqualWeightMode.UNLOCKED_ONLY)
        self.assertEqual(_pcts(result), {"A": 50.0, "B": 25.0, "C": 25.0})

    def test_all_ignores_locks_and_skips_disabled(self):
        p = _portfolio(
            Holding("A", 50.0, locked=True), ("B", 30), ("C", 20), Holding("D", 0.0, disabled=True)
        )
        result = AllocationEngine.equal_weight(p, EqualWeightMode.ALL)
        self.assertEqual(_pcts(result), {"A": 33.33, "B": 33.33, "C": 33.34, "D": 0.0})
        self.assertTrue(result.holdings["A"].locked)
        self.assertTrue(result.holdings["D"].disabled)

    def test_all_locked_rejected(self):
        p = _portfolio(Holding("A", 50.0, locked=True), Holding("B", 50.0, locked=True))
        self.assertIs(AllocationEngine.equal_weight(p), p)

    def test_already_equal_is_noop(self):
        p = _portfolio(("A", 50), ("B", 50))
        self.assertIs(AllocationEngine.equal_weight(p), p)

    def test_accepts_mode_string(self):
        p = _portfolio(("A", 70), ("B", 30))
        self.assertEqual(_pcts(AllocationEngine.equal_weight(p, "all")), {"A": 50.0, "B": 50.0})


# ===========================================================================
# 5. apply()
# ===========================================================================

class TestApply(unittest.TestCase):

    def test_dispatches_each_operation(self):
        p = AllocationEngine.apply(Portfolio(), Operation.ADD_TICKER, "A")
        p = AllocationEngine.apply(p, "add_ticker", "B")
        p = AllocationEngine.apply(p, Operation.SET_ALLOCATION, ("B", 25))
        self.assertEqual(_pcts(p), {"A": 75.0, "B": 25.0})

        p = AllocationEngine.apply(p, Operation.TOGGLE_LOCK, "B")
        self.assertTrue(p.holdings["B"].locked)

        p = AllocationEngine.apply(p, Operation.TOGGLE_DISABLE, "B")
        self.assertEqual(_pcts(p), {"A": 100.0, "B": 0.0})
        p = AllocationEngine.apply(p, Operation.TOGGLE_DISABLE, ("B", 25))
        self.assertEqual(_pcts(p), {"A": 75.0, "B": 25.0})

        p = AllocationEngine.apply(p, Operation.EQUAL_WEIGHT)
        self.assertEqual(_pcts(p), {"A": 50.0, "B": 50.0})

        p = AllocationEngine.apply(p, Operation.REMOVE_TICKER, "A")
        self.assertEqual(_pcts(p), {"B": 100.0})

    def test_unknown_operation_raises(self):
        with self.assertRaises(ValueError):
            AllocationEngine.apply(Portfolio(), "rebalance", None)


if __name__ == "__main__":
    unittest.main()
