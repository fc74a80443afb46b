"""
staking.py - Staking Pool with Time-Proportional Rewards

Accounts lock tokens in the protocol account and earn rewards proportional
to the amount staked and the logical time elapsed since their last claim.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES:
   - PoolInfo: the single staking pool (rate, totals, minimum duration)
   - StakeInfo: one position per account

2. PURE CALCULATION FUNCTIONS:
   - calculate_reward_index: cumulative rate at a ledger
   - calculate_pending_reward: reward owed to one stake

3. ADAPTER FUNCTIONS:
   - load_pool_info / load_stake_info

4. CONVENIENCE FUNCTIONS (compute_*):
   - initialize, stake, claim, unstake, admin updates, emergency exit

Key Formulas:
    reward = amount * reward_rate * (now - last_claim) / 10000

Rate changes apply to future time only. The pool keeps a cumulative index,
reward_index = sum(reward_rate * elapsed), checkpointed whenever the rate
changes, and each stake remembers the index at its last claim:

    reward = amount * (index(now) - stake.index_snapshot) / 10000

For a rate that has not changed since the last claim this is exactly the
formula above.

Invariant: pool.total_staked == sum(StakeInfo.amount) over all accounts.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional

from ..core import (
    LedgerView, PendingTransaction, Event, DataKey, StateKey,
    TransactionOrigin, OriginType, PROTOCOL_WALLET,
    AuthorizationError, AlreadyInitialized, NotInitialized, RecordNotFound,
    StakeLocked, NothingToClaim, InsufficientFunds,
    optional_move, record_change, build_transaction,
    require_positive, require_u32,
)
from ..access import require_admin
from ..rates import calculate_reward


POOL_INFO_KEY = StateKey(DataKey.POOL_INFO)
STAKING_ADMIN_KEY = StateKey(DataKey.STAKING_ADMIN)


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolInfo:
    """
    The staking pool.

    Attributes:
        staked_asset: Identifier of the staked asset
        reward_asset: Identifier of the reward asset
        reward_rate: Reward in basis points of the stake per tick
        total_staked: Sum of all stake amounts
        min_stake_duration: Ticks a stake must age before it can be withdrawn
        reward_index: Cumulative reward_rate * elapsed up to index_ledger
        index_ledger: Ledger of the last index checkpoint
    """
    staked_asset: str
    reward_asset: str
    reward_rate: int
    total_staked: int
    min_stake_duration: int
    reward_index: int = 0
    index_ledger: int = 0


@dataclass(frozen=True, slots=True)
class StakeInfo:
    """
    One account's stake.

    Attributes:
        amount: Tokens staked (> 0 while the record exists)
        since_ledger: Ledger of the first stake, used for the minimum duration
        last_claim_ledger: Ledger rewards were last settled
        index_snapshot: Pool reward index at last_claim_ledger
    """
    amount: int
    since_ledger: int
    last_claim_ledger: int
    index_snapshot: int = 0


def stake_key(account: str) -> StateKey:
    return StateKey(DataKey.STAKE_INFO, account)


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_pool_info(view: LedgerView) -> PoolInfo:
    pool = view.get_record(POOL_INFO_KEY)
    if pool is None:
        raise NotInitialized("staking pool not initialized")
    return pool


def load_stake_info(view: LedgerView, account: str) -> Optional[StakeInfo]:
    return view.get_record(stake_key(account))


def _require_staking_admin(view: LedgerView, caller: str) -> str:
    admin = view.get_record(STAKING_ADMIN_KEY)
    if admin is None:
        raise NotInitialized("staking pool not initialized")
    if caller != admin:
        raise AuthorizationError(f"{caller} is not the staking admin")
    return admin


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_reward_index(pool: PoolInfo, now: int) -> int:
    return pool.reward_index + pool.reward_rate * (now - pool.index_ledger)


def calculate_pending_reward(pool: PoolInfo, stake: StakeInfo, now: int) -> int:
    return calculate_reward(stake.amount, calculate_reward_index(pool, now) - stake.index_snapshot)


def checkpoint_pool(pool: PoolInfo, now: int) -> PoolInfo:
    """Fold the elapsed time at the current rate into the index."""
    return replace(pool, reward_index=calculate_reward_index(pool, now), index_ledger=now)


# ============================================================================
# QUERIES
# ============================================================================

def get_pool_info(view: LedgerView) -> PoolInfo:
    return load_pool_info(view)


def get_stake_info(view: LedgerView, account: str) -> StakeInfo:
    """
    Return account's stake.

    Raises:
        RecordNotFound: If account has no stake
    """
    stake = load_stake_info(view, account)
    if stake is None:
        raise RecordNotFound(f"no stake found for {account}")
    return stake


def get_pending_rewards(view: LedgerView, account: str) -> int:
    """Reward owed to account; 0 when account has no stake."""
    pool = load_pool_info(view)
    stake = load_stake_info(view, account)
    if stake is None:
        return 0
    return calculate_pending_reward(pool, stake, view.current_ledger)


# ============================================================================
# ADMINISTRATION
# ============================================================================

def compute_initialize_staking(
    view: LedgerView,
    caller: str,
    staked_asset: str,
    reward_asset: str,
    reward_rate: int,
    min_stake_duration: int,
) -> PendingTransaction:
    """
    Create the staking pool with the token admin as its admin. Can only run once.

    Raises:
        AuthorizationError: If caller is not the token admin
        AlreadyInitialized: If the pool exists
        ValidationError: If a rate or duration does not fit in 32 bits
    """
    admin = require_admin(view, caller)
    if view.get_record(POOL_INFO_KEY) is not None:
        raise AlreadyInitialized("staking pool already initialized")
    require_u32(reward_rate, "reward_rate")
    require_u32(min_stake_duration, "min_stake_duration")

    pool = PoolInfo(
        staked_asset=staked_asset,
        reward_asset=reward_asset,
        reward_rate=reward_rate,
        total_staked=0,
        min_stake_duration=min_stake_duration,
        reward_index=0,
        index_ledger=view.current_ledger,
    )
    return build_transaction(
        view,
        [],
        [record_change(view, STAKING_ADMIN_KEY, admin), record_change(view, POOL_INFO_KEY, pool)],
        [Event("initialize", admin, reward_rate)],
        TransactionOrigin(OriginType.ADMIN, admin, "initialize_staking"),
    )


def compute_update_reward_rate(view: LedgerView, caller: str, new_rate: int) -> PendingTransaction:
    """Change the reward rate from now on; time already elapsed keeps the old rate."""
    admin = _require_staking_admin(view, caller)
    require_u32(new_rate, "reward_rate")
    pool = load_pool_info(view)
    updated = replace(checkpoint_pool(pool, view.current_ledger), reward_rate=new_rate)
    return build_transaction(
        view,
        [],
        [record_change(view, POOL_INFO_KEY, updated)],
        [Event("update_rate", admin, new_rate)],
        TransactionOrigin(OriginType.ADMIN, admin, "update_reward_rate"),
    )


def compute_update_min_stake_duration(view: LedgerView, caller: str, duration: int) -> PendingTransaction:
    admin = _require_staking_admin(view, caller)
    require_u32(duration, "min_stake_duration")
    pool = load_pool_info(view)
    return build_transaction(
        view,
        [],
        [record_change(view, POOL_INFO_KEY, replace(pool, min_stake_duration=duration))],
        [Event("update_min_duration", admin, duration)],
        TransactionOrigin(OriginType.ADMIN, admin, "update_min_stake_duration"),
    )


def compute_emergency_withdraw_rewards(view: LedgerView, caller: str) -> PendingTransaction:
    """
    Sweep the whole protocol balance to the staking admin.

    Pool totals are left untouched. The result is the amount swept; the
    event is only emitted when something was swept.
    """
    admin = _require_staking_admin(view, caller)
    balance = view.get_balance(PROTOCOL_WALLET)
    events = [Event("emergency_withdraw", admin, balance)] if balance > 0 else []
    return build_transaction(
        view,
        list(optional_move(balance, PROTOCOL_WALLET, admin, "emergency_withdraw_rewards")),
        events=events,
        origin=TransactionOrigin(OriginType.ADMIN, admin, "emergency_withdraw_rewards"),
        result=balance,
    )


# ============================================================================
# STAKE
# ============================================================================

def compute_stake(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    """
    Stake amount of caller's tokens.

    An existing stake first has its pending reward paid out, then grows by
    amount and restarts reward accrual from now. since_ledger is kept from
    the first stake.

    Raises:
        ValidationError: If amount <= 0
        InsufficientFunds: If caller's balance is below amount
        NotInitialized: If the pool does not exist
    """
    require_positive(amount)
    balance = view.get_balance(caller)
    if balance < amount:
        raise InsufficientFunds(f"{caller} balance {balance} is less than {amount}")
    pool = load_pool_info(view)
    now = view.current_ledger
    index = calculate_reward_index(pool, now)

    moves = list(optional_move(amount, caller, PROTOCOL_WALLET, "stake"))
    events = []
    existing = load_stake_info(view, caller)
    if existing is not None:
        reward = calculate_pending_reward(pool, existing, now)
        if reward > 0:
            moves.extend(optional_move(reward, PROTOCOL_WALLET, caller, "stake_reward"))
            events.append(Event("claim_reward", caller, reward))
        stake = replace(
            existing,
            amount=existing.amount + amount,
            last_claim_ledger=now,
            index_snapshot=index,
        )
    else:
        stake = StakeInfo(amount=amount, since_ledger=now, last_claim_ledger=now, index_snapshot=index)
    events.append(Event("stake", caller, amount))

    return build_transaction(
        view,
        moves,
        [
            record_change(view, stake_key(caller), stake),
            record_change(view, POOL_INFO_KEY, replace(pool, total_staked=pool.total_staked + amount)),
        ],
        events,
        TransactionOrigin(OriginType.USER_ACTION, caller, "stake"),
    )


# ============================================================================
# CLAIM
# ============================================================================

def compute_claim_rewards(view: LedgerView, caller: str) -> PendingTransaction:
    """
    Pay caller's pending reward from the protocol account.

    Raises:
        RecordNotFound: If caller has no stake
        NothingToClaim: If the pending reward is 0
    """
    stake = load_stake_info(view, caller)
    if stake is None:
        raise RecordNotFound(f"no stake found for {caller}")
    pool = load_pool_info(view)
    now = view.current_ledger
    reward = calculate_pending_reward(pool, stake, now)
    if reward <= 0:
        raise NothingToClaim(f"no rewards to claim for {caller}")

    updated = replace(stake, last_claim_ledger=now, index_snapshot=calculate_reward_index(pool, now))
    return build_transaction(
        view,
        list(optional_move(reward, PROTOCOL_WALLET, caller, "claim_rewards")),
        [record_change(view, stake_key(caller), updated)],
        [Event("claim_reward", caller, reward)],
        TransactionOrigin(OriginType.USER_ACTION, caller, "claim_rewards"),
        result=reward,
    )


# ============================================================================
# UNSTAKE
# ============================================================================

def compute_unstake(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    """
    Withdraw amount of caller's stake, paying the pending reward first.

    The stake is deleted when it reaches 0. The result is amount.

    Raises:
        ValidationError: If amount <= 0
        RecordNotFound: If caller has no stake
        InsufficientFunds: If amount exceeds the stake
        StakeLocked: If the minimum stake duration has not elapsed
    """
    require_positive(amount)
    stake = load_stake_info(view, caller)
    if stake is None:
        raise RecordNotFound(f"no stake found for {caller}")
    if amount > stake.amount:
        raise InsufficientFunds(f"cannot unstake {amount}, only {stake.amount} staked")
    pool = load_pool_info(view)
    now = view.current_ledger
    if now - stake.since_ledger < pool.min_stake_duration:
        raise StakeLocked(
            f"minimum stake duration not met: {now - stake.since_ledger} < {pool.min_stake_duration}"
        )

    reward = calculate_pending_reward(pool, stake, now)
    moves = list(optional_move(reward, PROTOCOL_WALLET, caller, "unstake_reward"))
    moves.extend(optional_move(amount, PROTOCOL_WALLET, caller, "unstake"))
    events = [Event("claim_reward", caller, reward)] if reward > 0 else []
    events.append(Event("unstake", caller, amount))

    remaining = stake.amount - amount
    if remaining == 0:
        new_stake = None
    else:
        new_stake = replace(
            stake,
            amount=remaining,
            last_claim_ledger=now,
            index_snapshot=calculate_reward_index(pool, now),
        )

    return build_transaction(
        view,
        moves,
        [
            record_change(view, stake_key(caller), new_stake),
            record_change(view, POOL_INFO_KEY, replace(pool, total_staked=pool.total_staked - amount)),
        ],
        events,
        TransactionOrigin(OriginType.USER_ACTION, caller, "unstake"),
        result=amount,
    )
