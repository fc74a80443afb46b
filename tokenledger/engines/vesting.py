"""
vesting.py - Linear Vesting Grants with Cliff

Admin grants lock tokens in the beneficiary's account and release them
linearly between a start and an end ledger, optionally gated by a cliff.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASS (explicit inputs):
   - VestingSchedule: one grant per beneficiary

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - calculate_vested / calculate_claimable take the schedule and the
     current ledger explicitly

3. ADAPTER FUNCTIONS (load_*):
   - load_vesting_schedule reads the schedule from a LedgerView

4. CONVENIENCE FUNCTIONS (compute_*):
   - Combine loading + validation + calculation into a PendingTransaction

Granted tokens are credited at creation and the beneficiary is frozen, so
the balance exists but cannot leave the account. Claiming does not move
tokens: it records progress and lifts the freeze once the whole grant is
claimed. Revocation claws back the unclaimed remainder.

Key Formulas:
    now < start, or cliff > 0 and now < cliff:  claimable = 0
    now >= end:                                  claimable = total - claimed
    otherwise:  claimable = max(0, total * (now - start) / (end - start) - claimed)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional

from ..core import (
    LedgerView, PendingTransaction, Event, DataKey, StateKey,
    TransactionOrigin, OriginType,
    ValidationError, AlreadyExists, RecordNotFound, NothingToClaim, InsufficientFunds,
    optional_move, record_change, build_transaction,
    require_non_negative, require_u32,
)
from ..access import require_admin, frozen_change
from ..rates import div_trunc


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class VestingSchedule:
    """
    A beneficiary's vesting grant.

    Attributes:
        beneficiary: Account receiving the grant
        total_amount: Tokens granted (>= 0)
        claimed_amount: Tokens released so far (<= total_amount)
        start_ledger: Ledger at which vesting begins
        cliff_ledger: Ledger before which nothing is claimable (0 = no cliff)
        end_ledger: Ledger at which the grant is fully vested (> start_ledger)
    """
    beneficiary: str
    total_amount: int
    claimed_amount: int
    start_ledger: int
    cliff_ledger: int
    end_ledger: int

    def __post_init__(self):
        if self.total_amount < 0:
            raise ValueError(f"total_amount must be non-negative, got {self.total_amount}")
        if not 0 <= self.claimed_amount <= self.total_amount:
            raise ValueError(
                f"claimed_amount must be in [0, {self.total_amount}], got {self.claimed_amount}"
            )
        if self.end_ledger <= self.start_ledger:
            raise ValueError("end_ledger must be after start_ledger")
        if self.cliff_ledger != 0 and self.cliff_ledger < self.start_ledger:
            raise ValueError("cliff_ledger must be 0 or not before start_ledger")

    @property
    def remaining(self) -> int:
        return self.total_amount - self.claimed_amount


def vesting_key(beneficiary: str) -> StateKey:
    return StateKey(DataKey.VESTING_SCHEDULE, beneficiary)


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_vesting_schedule(view: LedgerView, beneficiary: str) -> Optional[VestingSchedule]:
    return view.get_record(vesting_key(beneficiary))


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_vested(schedule: VestingSchedule, now: int) -> int:
    """Tokens vested by ledger now, ignoring what was already claimed."""
    if now < schedule.start_ledger:
        return 0
    if schedule.cliff_ledger > 0 and now < schedule.cliff_ledger:
        return 0
    if now >= schedule.end_ledger:
        return schedule.total_amount
    elapsed = now - schedule.start_ledger
    duration = schedule.end_ledger - schedule.start_ledger
    return div_trunc(schedule.total_amount * elapsed, duration)


def calculate_claimable(schedule: VestingSchedule, now: int) -> int:
    """
    Tokens the beneficiary may claim at ledger now.

    Always within [0, total - claimed]. Once now >= end this is exactly the
    unclaimed remainder, unless a cliff beyond the end still holds it back.
    """
    if now < schedule.start_ledger:
        return 0
    if schedule.cliff_ledger > 0 and now < schedule.cliff_ledger:
        return 0
    if now >= schedule.end_ledger:
        return schedule.remaining
    return max(0, calculate_vested(schedule, now) - schedule.claimed_amount)


# ============================================================================
# QUERIES
# ============================================================================

def get_vesting_info(view: LedgerView, beneficiary: str) -> Optional[VestingSchedule]:
    return load_vesting_schedule(view, beneficiary)


def get_claimable_vesting(view: LedgerView, beneficiary: str) -> int:
    """Claimable amount for beneficiary; 0 when there is no schedule."""
    schedule = load_vesting_schedule(view, beneficiary)
    if schedule is None:
        return 0
    return calculate_claimable(schedule, view.current_ledger)


# ============================================================================
# CREATE
# ============================================================================

def compute_create_vesting(
    view: LedgerView,
    caller: str,
    beneficiary: str,
    total_amount: int,
    start_ledger: int,
    cliff_ledger: int,
    end_ledger: int,
) -> PendingTransaction:
    """
    Grant total_amount to beneficiary under a linear schedule.

    The admin's tokens move to the beneficiary immediately and the
    beneficiary is frozen until the grant is fully claimed or revoked.

    Raises:
        AuthorizationError: If caller is not the admin
        ValidationError: If total_amount < 0, end <= start, or 0 < cliff < start
        AlreadyExists: If the beneficiary already has a schedule
        InsufficientFunds: If the admin cannot fund the grant
    """
    admin = require_admin(view, caller)
    require_non_negative(total_amount, "total_amount")
    for name, value in (("start_ledger", start_ledger), ("cliff_ledger", cliff_ledger),
                        ("end_ledger", end_ledger)):
        require_u32(value, name)
    if end_ledger <= start_ledger:
        raise ValidationError(
            f"end_ledger ({end_ledger}) must be after start_ledger ({start_ledger})"
        )
    if cliff_ledger != 0 and cliff_ledger < start_ledger:
        raise ValidationError(
            f"cliff_ledger ({cliff_ledger}) must be 0 or >= start_ledger ({start_ledger})"
        )
    if load_vesting_schedule(view, beneficiary) is not None:
        raise AlreadyExists(f"vesting schedule already exists for {beneficiary}")
    balance = view.get_balance(admin)
    if balance < total_amount:
        raise InsufficientFunds(f"admin balance {balance} cannot fund grant of {total_amount}")

    schedule = VestingSchedule(
        beneficiary=beneficiary,
        total_amount=total_amount,
        claimed_amount=0,
        start_ledger=start_ledger,
        cliff_ledger=cliff_ledger,
        end_ledger=end_ledger,
    )
    return build_transaction(
        view,
        list(optional_move(total_amount, admin, beneficiary, "create_vesting")),
        [
            record_change(view, vesting_key(beneficiary), schedule),
            frozen_change(view, beneficiary, True),
        ],
        [Event("create_vesting", admin, total_amount, subject=beneficiary)],
        TransactionOrigin(OriginType.ADMIN, admin, "create_vesting"),
    )


# ============================================================================
# CLAIM
# ============================================================================

def compute_claim_vesting(view: LedgerView, caller: str) -> PendingTransaction:
    """
    Release the currently claimable amount of caller's grant.

    The result is the amount claimed. When the grant is fully claimed the
    schedule is deleted and the freeze is lifted.

    Raises:
        NothingToClaim: If nothing is claimable (including no schedule)
    """
    beneficiary = caller
    schedule = load_vesting_schedule(view, beneficiary)
    claimable = 0 if schedule is None else calculate_claimable(schedule, view.current_ledger)
    if claimable <= 0:
        raise NothingToClaim(f"no vested tokens to claim for {beneficiary}")

    updated = replace(schedule, claimed_amount=schedule.claimed_amount + claimable)
    if updated.claimed_amount >= updated.total_amount:
        changes = [
            record_change(view, vesting_key(beneficiary), None),
            frozen_change(view, beneficiary, False),
        ]
    else:
        changes = [record_change(view, vesting_key(beneficiary), updated)]

    return build_transaction(
        view,
        [],
        changes,
        [Event("claim_vesting", beneficiary, claimable)],
        TransactionOrigin(OriginType.USER_ACTION, beneficiary, "claim_vesting"),
        result=claimable,
    )


# ============================================================================
# REVOKE
# ============================================================================

def compute_revoke_vesting(view: LedgerView, caller: str, beneficiary: str) -> PendingTransaction:
    """
    Cancel a grant and return the unclaimed remainder to the admin.

    The remainder is debited from the beneficiary directly, regardless of
    the frozen flag. The result is the amount returned.

    Raises:
        AuthorizationError: If caller is not the admin
        RecordNotFound: If the beneficiary has no schedule
    """
    admin = require_admin(view, caller)
    schedule = load_vesting_schedule(view, beneficiary)
    if schedule is None:
        raise RecordNotFound(f"no vesting schedule for {beneficiary}")

    unclaimed = schedule.remaining
    return build_transaction(
        view,
        list(optional_move(unclaimed, beneficiary, admin, "revoke_vesting")),
        [
            record_change(view, vesting_key(beneficiary), None),
            frozen_change(view, beneficiary, False),
        ],
        [Event("revoke_vesting", admin, unclaimed, subject=beneficiary)],
        TransactionOrigin(OriginType.ADMIN, admin, "revoke_vesting"),
        result=unclaimed,
    )
