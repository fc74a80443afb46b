"""
test_protocol_scenarios.py - End-to-end protocol scenario tests

Tests complete flows across engines on one ledger:
- Vesting grant released, then staked
- Interest turning a maximal borrow into a liquidation
- Dynamic repricing as utilization moves
- Admin wind-down with emergency sweeps
- Audit trail and replay of a long session
"""

import pytest

from tokenledger import (
    Protocol, Ledger, PROTOCOL_WALLET, LEDGERS_PER_YEAR, SYSTEM_WALLET,
    AccountFrozen, PositionHealthy,
)
from tests.conftest import (
    ADMIN, ALICE, BOB, CAROL, DAVE, USER_FUNDS, ADMIN_FUNDS, REWARD_FUNDS,
    make_protocol, make_full_protocol, make_lending_protocol, verify_conservation, ledger_state,
)


class TestVestingToStaking:
    """A team grant vests, is claimed, then put to work in the staking pool."""

    def test_grant_claim_and_stake(self):
        protocol = make_full_protocol()
        protocol.create_vesting(ADMIN, DAVE, 10_000, 100, 150, 1_100)

        protocol.ledger.advance_to(120)
        assert protocol.get_claimable_vesting(DAVE) == 0
        with pytest.raises(AccountFrozen):
            protocol.transfer(DAVE, ALICE, 1)

        protocol.ledger.advance_to(600)
        assert protocol.claim_vesting(DAVE) == 5_000
        assert protocol.is_frozen(DAVE)

        protocol.ledger.advance_to(1_100)
        assert protocol.claim_vesting(DAVE) == 5_000
        assert not protocol.is_frozen(DAVE)

        protocol.stake(DAVE, USER_FUNDS + 10_000)
        protocol.ledger.advance(100)
        assert protocol.get_pending_rewards(DAVE) == (USER_FUNDS + 10_000) * 1 * 100 // 10_000
        protocol.unstake(DAVE, USER_FUNDS + 10_000)
        assert protocol.balance(DAVE) == USER_FUNDS + 10_000 + 1_100
        verify_conservation(protocol.ledger)


class TestInterestDrivenLiquidation:
    """A borrow at the collateral limit becomes unsafe as interest accrues."""

    def test_accrued_interest_triggers_liquidation(self):
        protocol = make_lending_protocol()
        protocol.supply(ALICE, 2_000)
        protocol.borrow(BOB, 750, 1_000)
        assert protocol.get_user_health_factor(BOB) == 106
        with pytest.raises(PositionHealthy):
            protocol.liquidate(CAROL, BOB, 100)

        protocol.ledger.advance_to(LEDGERS_PER_YEAR)
        assert protocol.get_pending_borrow_interest(BOB) == 75
        assert protocol.get_user_health_factor(BOB) == 96
        assert protocol.find_liquidatable_positions(ADMIN, [ALICE, BOB]) == [BOB]

        assert protocol.liquidate(CAROL, BOB, 1_000) == 412
        assert protocol.balance(CAROL) == USER_FUNDS - 412 + 432
        borrow = protocol.get_user_borrow_info(BOB)
        assert borrow.debt == 413
        assert borrow.collateral_deposited == 568
        assert protocol.get_user_health_factor(BOB) == 110

        pool = protocol.get_lending_pool_info()
        assert pool.total_supplied == 2_100
        assert pool.total_borrowed == 413
        verify_conservation(protocol.ledger)

    def test_borrower_repays_after_liquidation(self):
        protocol = make_lending_protocol()
        protocol.supply(ALICE, 2_000)
        protocol.borrow(BOB, 750, 1_000)
        protocol.ledger.advance_to(LEDGERS_PER_YEAR)
        protocol.liquidate(CAROL, BOB, 1_000)

        assert protocol.repay(BOB, 10_000) == 413
        assert protocol.get_user_borrow_info(BOB) is None
        assert protocol.balance(BOB) == USER_FUNDS - 1_000 + 750 - 413 + 568


class TestDynamicRates:

    def test_rates_follow_utilization(self):
        protocol = make_lending_protocol()
        protocol.supply(ALICE, 10_000)
        protocol.borrow(BOB, 5_000, 10_000)
        protocol.update_dynamic_rates(ADMIN)
        low = protocol.get_lending_pool_info()
        assert (low.borrow_rate, low.supply_rate) == (450, 202)

        protocol.borrow(CAROL, 4_000, 8_000)
        protocol.update_dynamic_rates(ADMIN)
        high = protocol.get_lending_pool_info()
        assert high.utilization_rate == 9_000
        assert (high.borrow_rate, high.supply_rate) == (1_600, 1_296)
        assert protocol.get_protocol_risk_metrics(ADMIN).risk_score == 75


class TestWindDown:

    def test_emergency_sweeps_empty_the_protocol_account(self):
        protocol = make_full_protocol()
        protocol.stake(ALICE, 1_000)
        protocol.supply(BOB, 2_000)

        swept = protocol.emergency_withdraw_lending_pool(ADMIN)
        assert swept == REWARD_FUNDS + 3_000
        assert protocol.balance(PROTOCOL_WALLET) == 0
        assert protocol.emergency_withdraw_rewards(ADMIN) == 0
        assert protocol.balance(ADMIN) == ADMIN_FUNDS + swept
        verify_conservation(protocol.ledger)


class TestAuditTrail:

    def test_long_session_replays(self):
        protocol = make_full_protocol()
        protocol.create_vesting(ADMIN, CAROL, 1_000, 10, 0, 20)
        protocol.approve(ALICE, BOB, 5_000, 1_000)
        protocol.transfer_from(BOB, ALICE, DAVE, 2_000)
        protocol.stake(DAVE, 3_000)
        protocol.supply(ALICE, 20_000)
        protocol.borrow(BOB, 6_000, 9_000)
        protocol.ledger.advance_to(50)
        protocol.claim_vesting(CAROL)
        protocol.claim_rewards(DAVE)
        protocol.repay(BOB, 1_000)
        protocol.burn(ALICE, 500)

        replayed = protocol.ledger.replay()
        assert ledger_state(replayed) == ledger_state(protocol.ledger)
        assert len(replayed.transaction_log) == len(protocol.ledger.transaction_log)

    def test_default_ledger_is_created(self):
        protocol = Protocol(verbose=False)
        protocol.initialize(ADMIN, 7, "Token", "TKN")
        protocol.mint(ADMIN, ALICE, 100)
        assert protocol.ledger.name == "protocol"
        assert protocol.ledger.get_balance(SYSTEM_WALLET) == -100

    def test_verbose_output(self, capsys):
        protocol = Protocol(Ledger("loud", verbose=True, test_mode=True), verbose=True)
        protocol.initialize(ADMIN, 7, "Token", "TKN")
        protocol.initialize_lending_pool(ADMIN, 500, 1_000, 7_500, 1_000)
        protocol.batch_liquidate(ADMIN, [(BOB, 10)])
        out = capsys.readouterr().out
        assert "APPLIED" in out
        assert "[BATCH] skipped bob" in out
