"""
Lending Conformance Tests

INVARIANTS:

    ∀ successful borrow or remove_collateral:
        collateral × collateral_factor ≥ debt × 10000

    ∀ successful liquidation of debt D with penalty p:
        repaid ≤ D / 2
        seized = repaid + repaid × p / 10000 ≤ collateral before

    ∀ state S:
        pool.total_borrowed ≥ 0
        pool.utilization_rate = total_borrowed × 10000 / total_supplied
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tokenledger import LedgerError, BASIS_POINTS
from tokenledger.rates import calculate_utilization
from tests.conftest import ALICE, BOB, CAROL, ADMIN, make_lending_protocol, make_full_protocol
from tests.conformance.operations import script_strategy, run_script


def _assert_backed(protocol, account):
    borrow = protocol.get_user_borrow_info(account)
    pool = protocol.get_lending_pool_info()
    assert borrow.collateral_deposited * pool.collateral_factor >= borrow.debt * BASIS_POINTS


class TestCollateralInvariant:

    @given(
        amount=st.integers(min_value=1, max_value=10_000),
        collateral=st.integers(min_value=0, max_value=20_000),
    )
    @settings(max_examples=50, deadline=None)
    def test_successful_borrow_is_backed(self, amount, collateral):
        """
        PROPERTY: A borrow succeeds only if the position is adequately collateralized.
        """
        protocol = make_lending_protocol()
        protocol.supply(ALICE, 50_000)
        try:
            protocol.borrow(BOB, amount, collateral)
        except LedgerError:
            assert collateral * 7_500 < amount * BASIS_POINTS
            return
        _assert_backed(protocol, BOB)

    @given(removals=st.lists(st.integers(min_value=1, max_value=500), max_size=10))
    @settings(max_examples=50, deadline=None)
    def test_remove_collateral_keeps_position_backed(self, removals):
        """
        PROPERTY: No sequence of collateral removals leaves a position under-collateralized.
        """
        protocol = make_lending_protocol()
        protocol.supply(ALICE, 5_000)
        protocol.borrow(BOB, 600, 1_500)
        for amount in removals:
            try:
                protocol.remove_collateral(BOB, amount)
            except LedgerError:
                pass
            _assert_backed(protocol, BOB)


class TestLiquidationCaps:

    @given(
        repay=st.integers(min_value=1, max_value=5_000),
        threshold=st.integers(min_value=1, max_value=7_999),
        penalty=st.integers(min_value=0, max_value=2_000),
    )
    @settings(max_examples=50, deadline=None)
    def test_liquidation_respects_caps(self, repay, threshold, penalty):
        """
        PROPERTY: A liquidation repays at most half the debt and seizes repaid plus penalty.
        """
        protocol = make_lending_protocol()
        protocol.supply(ALICE, 10_000)
        protocol.borrow(BOB, 1_000, 1_334)
        protocol.update_liquidation_params(ADMIN, threshold, penalty)

        debt = protocol.get_user_borrow_info(BOB).debt
        collateral = protocol.get_user_borrow_info(BOB).collateral_deposited
        carol_before = protocol.balance(CAROL)
        try:
            repaid = protocol.liquidate(CAROL, BOB, repay)
        except LedgerError:
            return
        seized = repaid + repaid * penalty // BASIS_POINTS
        assert repaid <= debt // 2
        assert repaid <= repay
        assert seized <= collateral
        assert protocol.balance(CAROL) == carol_before - repaid + seized

    def test_healthy_positions_cannot_be_liquidated(self):
        protocol = make_lending_protocol()
        protocol.supply(ALICE, 10_000)
        protocol.borrow(BOB, 1_000, 1_334)
        with pytest.raises(LedgerError):
            protocol.liquidate(CAROL, BOB, 100)


class TestPoolTotals:

    @given(script_strategy())
    @settings(max_examples=50, deadline=None)
    def test_pool_totals_consistent(self, script):
        """
        PROPERTY: Pool totals stay non-negative and utilization matches them.
        """
        def check(protocol):
            pool = protocol.get_lending_pool_info()
            assert pool.total_borrowed >= 0
            assert pool.total_supplied >= 0
            assert pool.utilization_rate == calculate_utilization(pool.total_borrowed, pool.total_supplied)

        run_script(make_full_protocol(), script, after_each=check)
