"""
Unit tests for linear vesting grants.

Covers schedule validation, the linear release curve, cliffs, claiming,
completion (record deleted, freeze lifted) and revocation.
"""

import pytest
from hypothesis import given, settings, strategies as st

from tokenledger import (
    ValidationError, AlreadyExists, RecordNotFound, NothingToClaim,
    AuthorizationError, AccountFrozen, InsufficientFunds, VestingSchedule,
)
from tokenledger.engines.vesting import (
    calculate_vested, calculate_claimable, compute_claim_vesting, vesting_key,
)
from tests.fake_view import FakeView
from tests.conftest import ADMIN, ALICE, BOB, USER_FUNDS, ADMIN_FUNDS, verify_conservation


def _schedule(total=1_000, claimed=0, start=100, cliff=0, end=200):
    return VestingSchedule(ALICE, total, claimed, start, cliff, end)


class TestVestingSchedule:

    def test_end_must_follow_start(self):
        with pytest.raises(ValueError):
            _schedule(start=200, end=200)

    def test_claimed_bounded_by_total(self):
        with pytest.raises(ValueError):
            _schedule(claimed=1_001)

    def test_remaining(self):
        assert _schedule(claimed=300).remaining == 700


class TestCalculateVested:

    def test_before_start(self):
        assert calculate_vested(_schedule(), 99) == 0

    def test_linear_midpoint(self):
        assert calculate_vested(_schedule(), 150) == 500

    def test_truncates(self):
        assert calculate_vested(_schedule(total=1_000, start=0, end=3), 1) == 333

    def test_after_end(self):
        assert calculate_vested(_schedule(), 10_000) == 1_000

    def test_cliff_blocks_release(self):
        schedule = _schedule(cliff=150)
        assert calculate_vested(schedule, 149) == 0
        assert calculate_vested(schedule, 150) == 500

    def test_claimable_subtracts_claimed(self):
        assert calculate_claimable(_schedule(claimed=400), 150) == 100
        assert calculate_claimable(_schedule(claimed=600), 150) == 0

    def test_claimable_after_end_is_remainder(self):
        assert calculate_claimable(_schedule(claimed=999), 200) == 1

    @given(
        total=st.integers(min_value=0, max_value=10**15),
        start=st.integers(min_value=0, max_value=1_000),
        duration=st.integers(min_value=1, max_value=1_000),
        now=st.integers(min_value=0, max_value=3_000),
    )
    @settings(max_examples=50)
    def test_claimable_within_bounds(self, total, start, duration, now):
        schedule = VestingSchedule(ALICE, total, 0, start, 0, start + duration)
        claimable = calculate_claimable(schedule, now)
        assert 0 <= claimable <= total


class TestCreateVesting:

    def test_create(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        schedule = protocol.get_vesting_info(ALICE)
        assert schedule == VestingSchedule(ALICE, 1_000, 0, 100, 0, 200)
        assert protocol.balance(ALICE) == USER_FUNDS + 1_000
        assert protocol.balance(ADMIN) == ADMIN_FUNDS - 1_000
        assert protocol.is_frozen(ALICE)
        verify_conservation(protocol.ledger)

    def test_beneficiary_cannot_transfer_while_vesting(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        with pytest.raises(AccountFrozen):
            protocol.transfer(ALICE, BOB, 1)

    def test_only_admin(self, protocol):
        with pytest.raises(AuthorizationError):
            protocol.create_vesting(BOB, ALICE, 1_000, 100, 0, 200)

    @pytest.mark.parametrize("start,cliff,end", [(100, 0, 100), (100, 0, 50), (100, 50, 200)])
    def test_invalid_bounds(self, protocol, start, cliff, end):
        with pytest.raises(ValidationError):
            protocol.create_vesting(ADMIN, ALICE, 1_000, start, cliff, end)

    def test_negative_total(self, protocol):
        with pytest.raises(ValidationError):
            protocol.create_vesting(ADMIN, ALICE, -1, 100, 0, 200)

    def test_duplicate_grant(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        with pytest.raises(AlreadyExists):
            protocol.create_vesting(ADMIN, ALICE, 5, 100, 0, 200)
        assert protocol.get_vesting_info(ALICE).total_amount == 1_000

    def test_admin_cannot_fund(self, protocol):
        with pytest.raises(InsufficientFunds):
            protocol.create_vesting(ADMIN, ALICE, ADMIN_FUNDS + 1, 100, 0, 200)


class TestClaimVesting:

    def test_partial_then_final_claim(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)

        protocol.ledger.advance_to(150)
        assert protocol.get_claimable_vesting(ALICE) == 500
        assert protocol.claim_vesting(ALICE) == 500
        assert protocol.get_vesting_info(ALICE).claimed_amount == 500
        assert protocol.is_frozen(ALICE)

        protocol.ledger.advance_to(300)
        assert protocol.claim_vesting(ALICE) == 500
        assert protocol.get_vesting_info(ALICE) is None
        assert not protocol.is_frozen(ALICE)
        protocol.transfer(ALICE, BOB, USER_FUNDS + 1_000)

    def test_claim_does_not_move_balance(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        protocol.ledger.advance_to(150)
        protocol.claim_vesting(ALICE)
        assert protocol.balance(ALICE) == USER_FUNDS + 1_000

    def test_nothing_before_start(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        with pytest.raises(NothingToClaim):
            protocol.claim_vesting(ALICE)

    def test_nothing_before_cliff(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 180, 200)
        protocol.ledger.advance_to(179)
        with pytest.raises(NothingToClaim):
            protocol.claim_vesting(ALICE)

    def test_no_schedule(self):
        with pytest.raises(NothingToClaim):
            compute_claim_vesting(FakeView(ledger=500), ALICE)

    def test_claim_twice_in_same_ledger(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        protocol.ledger.advance_to(150)
        protocol.claim_vesting(ALICE)
        with pytest.raises(NothingToClaim):
            protocol.claim_vesting(ALICE)

    def test_claim_result_matches_event(self):
        view = FakeView(records={vesting_key(ALICE): _schedule()}, ledger=120)
        pending = compute_claim_vesting(view, ALICE)
        assert pending.result == 200
        assert pending.events[0].amount == 200


class TestRevokeVesting:

    def test_revoke_returns_unclaimed(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        protocol.ledger.advance_to(150)
        protocol.claim_vesting(ALICE)

        assert protocol.revoke_vesting(ADMIN, ALICE) == 500
        assert protocol.balance(ALICE) == USER_FUNDS + 500
        assert protocol.balance(ADMIN) == ADMIN_FUNDS - 500
        assert protocol.get_vesting_info(ALICE) is None
        assert not protocol.is_frozen(ALICE)
        verify_conservation(protocol.ledger)

    def test_revoke_missing(self, protocol):
        with pytest.raises(RecordNotFound):
            protocol.revoke_vesting(ADMIN, ALICE)

    def test_revoke_requires_admin(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        with pytest.raises(AuthorizationError):
            protocol.revoke_vesting(ALICE, ALICE)

    def test_grant_again_after_revoke(self, protocol):
        protocol.create_vesting(ADMIN, ALICE, 1_000, 100, 0, 200)
        protocol.revoke_vesting(ADMIN, ALICE)
        protocol.create_vesting(ADMIN, ALICE, 10, 100, 0, 200)
        assert protocol.get_vesting_info(ALICE).total_amount == 10


class TestCliffAfterEnd:

    def test_cliff_beyond_end_holds_everything(self):
        schedule = _schedule(cliff=250)
        assert calculate_claimable(schedule, 200) == 0
        assert calculate_claimable(schedule, 250) == 1_000
