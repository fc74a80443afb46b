"""
Atomicity Conformance Tests

INVARIANT: Operations are all-or-nothing.

    ∀ operation O:
        O succeeds ⟹ all moves, record changes and events of O are applied
        O fails ⟹ balances, records and events are exactly as before O

Partial application is impossible by construction: engines only compute,
and the ledger validates a whole transaction before writing any of it.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tokenledger import (
    Ledger, Move, ExecuteResult, LedgerError, TransactionRejected, SYSTEM_WALLET,
    build_transaction,
)
from tests.conftest import (
    ADMIN, ALICE, BOB, CAROL, USER_FUNDS,
    make_protocol, make_full_protocol, ledger_state,
)
from tests.conformance.operations import script_strategy, apply_operation


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(st.integers(min_value=2, max_value=10))
    @settings(max_examples=50)
    def test_multi_move_all_or_nothing(self, num_moves):
        """
        PROPERTY: A transaction with N moves either applies all N or none.
        """
        ledger = Ledger("test", verbose=False, test_mode=True)
        wallets = [f"wallet_{i}" for i in range(num_moves + 1)]
        ledger.set_balance(wallets[0], 100)

        moves = [Move(100, wallets[i], wallets[i + 1], f"leg_{i}") for i in range(num_moves)]
        moves.append(Move(1, wallets[0], wallets[-1], "overdraft"))
        before = dict(ledger.balances)

        assert ledger.execute(build_transaction(ledger, moves)) == ExecuteResult.REJECTED
        assert dict(ledger.balances) == before

    @given(script_strategy(max_size=15))
    @settings(max_examples=50, deadline=None)
    def test_failed_operations_change_nothing(self, script):
        """
        PROPERTY: Whenever an operation raises, the ledger state is unchanged.
        """
        protocol = make_full_protocol()
        for operation, index, amount in script:
            before = ledger_state(protocol.ledger)
            log_length = len(protocol.ledger.transaction_log)
            try:
                apply_operation(protocol, operation, index, amount)
            except LedgerError:
                assert ledger_state(protocol.ledger) == before
                assert len(protocol.ledger.transaction_log) == log_length


class TestAtomicityExamples:

    def test_rejected_claim_leaves_stake_untouched(self):
        """A reward the protocol cannot fund rejects the whole claim."""
        protocol = make_protocol()
        protocol.initialize_staking(ADMIN, "PTK", "PTK", 10_000, 0)
        protocol.stake(ALICE, 1_000)
        protocol.ledger.advance_to(5)
        before = ledger_state(protocol.ledger)
        with pytest.raises(TransactionRejected):
            protocol.claim_rewards(ALICE)
        assert ledger_state(protocol.ledger) == before
        assert protocol.get_stake_info(ALICE).last_claim_ledger == 0

    def test_failed_borrow_moves_no_collateral(self):
        protocol = make_full_protocol()
        protocol.supply(ALICE, 1_000)
        with pytest.raises(LedgerError):
            protocol.borrow(BOB, 600, 100)
        assert protocol.balance(BOB) == USER_FUNDS
        assert protocol.get_user_borrow_info(BOB) is None

    def test_record_and_move_rejected_together(self):
        protocol = make_protocol()
        protocol.approve(ALICE, BOB, 500, 100)
        protocol.ledger.set_balance(ALICE, 10)
        with pytest.raises(LedgerError):
            protocol.transfer_from(BOB, ALICE, CAROL, 50)
        assert protocol.allowance(ALICE, BOB) == 500
        assert protocol.balance(CAROL) == USER_FUNDS

    def test_system_wallet_only_counterparty_for_issuance(self):
        protocol = make_protocol()
        protocol.burn(ALICE, 100)
        assert protocol.ledger.transaction_log[-1].moves == (Move(100, ALICE, SYSTEM_WALLET, "burn"),)
