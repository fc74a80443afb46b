"""
lending.py - Collateralized Lending Pool

A single pool that suppliers fund and borrowers draw from against
collateral, with lazily accrued simple interest, a health factor on every
borrow position, and partial liquidation of unsafe positions.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - LendingPool: pool totals, rates and factors
   - LiquidationParams: liquidation threshold and penalty
   - UserSupply / UserBorrow: per-account positions
   - PositionSummary / RiskMetrics: query results

2. PURE CALCULATION FUNCTIONS:
   - accrue_pool: bring pool totals up to the current ledger
   - settle_supply / settle_borrow: fold a user's pending interest into
     accrued_interest
   - calculate_position_health: health factor of a borrow position

3. ADAPTER FUNCTIONS (load_*):
   - The only place that reads pool and position records from a LedgerView

4. CONVENIENCE FUNCTIONS (compute_*):
   - One per operation; each accrues the pool first, validates, and returns
     a PendingTransaction

Key Formulas:
    interest       = principal * rate * elapsed / (10000 * LEDGERS_PER_YEAR)
    utilization    = total_borrowed * 10000 / total_supplied
    adequate       = collateral * collateral_factor >= debt * 10000
    health_factor  = collateral * liquidation_threshold / (debt * 100)
    liquidatable   = health_factor < 100
    max_repay      = total_debt * 50%
    seized         = repay + repay * liquidation_penalty / 10000

Repayments and withdrawals always consume accrued interest before principal.
Collateral is valued 1:1 with the borrowed asset.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from ..core import (
    LedgerView, PendingTransaction, Event, DataKey, StateKey,
    TransactionOrigin, OriginType, PROTOCOL_WALLET,
    LIQUIDATION_HEALTH_THRESHOLD, HEALTH_FACTOR_MAX, MAX_BATCH_LIQUIDATIONS,
    DEFAULT_LIQUIDATION_THRESHOLD, DEFAULT_LIQUIDATION_PENALTY,
    ValidationError, AlreadyInitialized, NotInitialized, RecordNotFound,
    InsufficientFunds, InsufficientLiquidity, InsufficientCollateral,
    UnsafePosition, PositionHealthy, InsufficientReserves,
    optional_move, record_change, build_transaction, empty_pending_transaction,
    require_positive, require_non_negative, require_u32, require_basis_points,
)
from ..access import require_admin, ensure_not_frozen
from ..rates import (
    RateModel, DEFAULT_RATE_MODEL,
    calculate_interest, calculate_utilization, calculate_borrow_rate,
    calculate_supply_rate, calculate_health_factor, calculate_required_collateral,
    is_adequately_collateralized, calculate_max_liquidation, calculate_seizure,
    calculate_max_borrowable, calculate_reserves, calculate_risk_score,
)


LENDING_POOL_KEY = StateKey(DataKey.LENDING_POOL)
LIQUIDATION_PARAMS_KEY = StateKey(DataKey.LIQUIDATION_PARAMS)


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class LendingPool:
    """
    The lending pool.

    Attributes:
        total_supplied: Supplied principal plus pool-level supply interest
        total_borrowed: Borrowed principal plus pool-level borrow interest
        supply_rate: Annual supply rate, basis points
        borrow_rate: Annual borrow rate, basis points
        utilization_rate: total_borrowed * 10000 / total_supplied
        reserve_factor: Share of idle funds held as reserves, basis points
        last_update_ledger: Ledger the totals were last accrued to
        collateral_factor: Borrowing power per unit of collateral, basis points
    """
    total_supplied: int
    total_borrowed: int
    supply_rate: int
    borrow_rate: int
    utilization_rate: int
    reserve_factor: int
    last_update_ledger: int
    collateral_factor: int

    @property
    def available_liquidity(self) -> int:
        return self.total_supplied - self.total_borrowed


@dataclass(frozen=True, slots=True)
class LiquidationParams:
    threshold: int = DEFAULT_LIQUIDATION_THRESHOLD
    penalty: int = DEFAULT_LIQUIDATION_PENALTY


@dataclass(frozen=True, slots=True)
class UserSupply:
    amount: int
    last_update_ledger: int
    accrued_interest: int = 0

    @property
    def balance(self) -> int:
        return self.amount + self.accrued_interest


@dataclass(frozen=True, slots=True)
class UserBorrow:
    """
    A borrow position.

    Attributes:
        amount: Outstanding principal
        last_update_ledger: Ledger interest was last settled
        accrued_interest: Settled, unpaid interest
        collateral_deposited: Collateral held by the protocol for this position
    """
    amount: int
    last_update_ledger: int
    accrued_interest: int = 0
    collateral_deposited: int = 0

    @property
    def debt(self) -> int:
        return self.amount + self.accrued_interest


@dataclass(frozen=True, slots=True)
class PositionSummary:
    total_supplied: int
    total_borrowed: int
    total_collateral: int
    health_factor: int


@dataclass(frozen=True, slots=True)
class RiskMetrics:
    tvl: int
    total_debt: int
    utilization: int
    risk_score: int


def supply_key(account: str) -> StateKey:
    return StateKey(DataKey.USER_SUPPLY, account)


def borrow_key(account: str) -> StateKey:
    return StateKey(DataKey.USER_BORROW, account)


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_lending_pool(view: LedgerView) -> LendingPool:
    pool = view.get_record(LENDING_POOL_KEY)
    if pool is None:
        raise NotInitialized("lending pool not initialized")
    return pool


def load_liquidation_params(view: LedgerView) -> LiquidationParams:
    return view.get_record(LIQUIDATION_PARAMS_KEY) or LiquidationParams()


def load_user_supply(view: LedgerView, account: str) -> Optional[UserSupply]:
    return view.get_record(supply_key(account))


def load_user_borrow(view: LedgerView, account: str) -> Optional[UserBorrow]:
    return view.get_record(borrow_key(account))


def load_accrued_pool(view: LedgerView) -> LendingPool:
    """Pool brought up to the current ledger, with utilization refreshed."""
    return with_utilization(accrue_pool(load_lending_pool(view), view.current_ledger))


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def accrue_pool(pool: LendingPool, now: int) -> LendingPool:
    """
    Add interest for the ticks since last_update_ledger to both pool totals.

    Returns the pool unchanged when no time has elapsed.
    """
    elapsed = now - pool.last_update_ledger
    if elapsed <= 0:
        return pool
    borrow_interest = calculate_interest(pool.total_borrowed, pool.borrow_rate, elapsed)
    supply_interest = calculate_interest(pool.total_supplied, pool.supply_rate, elapsed)
    return replace(
        pool,
        total_borrowed=pool.total_borrowed + borrow_interest,
        total_supplied=pool.total_supplied + supply_interest,
        last_update_ledger=now,
    )


def with_utilization(pool: LendingPool) -> LendingPool:
    utilization = calculate_utilization(pool.total_borrowed, pool.total_supplied)
    if utilization == pool.utilization_rate:
        return pool
    return replace(pool, utilization_rate=utilization)


def calculate_supply_interest(supply: UserSupply, pool: LendingPool, now: int) -> int:
    return calculate_interest(supply.amount, pool.supply_rate, now - supply.last_update_ledger)


def calculate_borrow_interest(borrow: UserBorrow, pool: LendingPool, now: int) -> int:
    return calculate_interest(borrow.amount, pool.borrow_rate, now - borrow.last_update_ledger)


def settle_supply(supply: UserSupply, pool: LendingPool, now: int) -> UserSupply:
    interest = calculate_supply_interest(supply, pool, now)
    return replace(supply, accrued_interest=supply.accrued_interest + interest, last_update_ledger=now)


def settle_borrow(borrow: UserBorrow, pool: LendingPool, now: int) -> UserBorrow:
    interest = calculate_borrow_interest(borrow, pool, now)
    return replace(borrow, accrued_interest=borrow.accrued_interest + interest, last_update_ledger=now)


def calculate_position_health(borrow: UserBorrow, params: LiquidationParams) -> int:
    return calculate_health_factor(borrow.collateral_deposited, borrow.debt, params.threshold)


def _pay_down(borrow: UserBorrow, payment: int) -> UserBorrow:
    """Apply payment to accrued interest first, then principal."""
    from_interest = min(payment, borrow.accrued_interest)
    return replace(
        borrow,
        accrued_interest=borrow.accrued_interest - from_interest,
        amount=borrow.amount - (payment - from_interest),
    )


def _reduce_borrowed(pool: LendingPool, repaid: int) -> LendingPool:
    # Per-user interest can run ahead of the truncated pool-level accrual.
    return with_utilization(replace(pool, total_borrowed=max(0, pool.total_borrowed - repaid)))


def _user_origin(caller: str, event_type: str) -> TransactionOrigin:
    return TransactionOrigin(OriginType.USER_ACTION, caller, event_type)


def _admin_origin(caller: str, event_type: str) -> TransactionOrigin:
    return TransactionOrigin(OriginType.ADMIN, caller, event_type)


def _check_balance(view: LedgerView, account: str, amount: int) -> None:
    balance = view.get_balance(account)
    if balance < amount:
        raise InsufficientFunds(f"{account} balance {balance} is less than {amount}")


# ============================================================================
# QUERIES
# ============================================================================

def get_lending_pool_info(view: LedgerView) -> LendingPool:
    return load_lending_pool(view)


def get_liquidation_params(view: LedgerView) -> LiquidationParams:
    return load_liquidation_params(view)


def get_user_supply_info(view: LedgerView, account: str) -> Optional[UserSupply]:
    return load_user_supply(view, account)


def get_user_borrow_info(view: LedgerView, account: str) -> Optional[UserBorrow]:
    return load_user_borrow(view, account)


def get_pending_supply_interest(view: LedgerView, account: str) -> int:
    """Unsettled supply interest for account; 0 without a supply position."""
    supply = load_user_supply(view, account)
    if supply is None:
        return 0
    return calculate_supply_interest(supply, load_lending_pool(view), view.current_ledger)


def get_pending_borrow_interest(view: LedgerView, account: str) -> int:
    """Unsettled borrow interest for account; 0 without a borrow position."""
    borrow = load_user_borrow(view, account)
    if borrow is None:
        return 0
    return calculate_borrow_interest(borrow, load_lending_pool(view), view.current_ledger)


def get_current_debt(view: LedgerView, account: str) -> int:
    """Principal plus settled and unsettled interest; 0 without a position."""
    borrow = load_user_borrow(view, account)
    if borrow is None:
        return 0
    pool = load_lending_pool(view)
    return borrow.debt + calculate_borrow_interest(borrow, pool, view.current_ledger)


def get_user_health_factor(view: LedgerView, account: str) -> int:
    """
    Health factor of account's borrow position, including unsettled interest.

    HEALTH_FACTOR_MAX when there is no position or no debt.
    """
    borrow = load_user_borrow(view, account)
    if borrow is None:
        return HEALTH_FACTOR_MAX
    pool = load_lending_pool(view)
    settled = settle_borrow(borrow, pool, view.current_ledger)
    return calculate_position_health(settled, load_liquidation_params(view))


def is_liquidatable(view: LedgerView, account: str) -> bool:
    return get_user_health_factor(view, account) < LIQUIDATION_HEALTH_THRESHOLD


def get_user_position_summary(view: LedgerView, account: str) -> PositionSummary:
    supply = load_user_supply(view, account)
    borrow = load_user_borrow(view, account)
    return PositionSummary(
        total_supplied=supply.balance if supply else 0,
        total_borrowed=borrow.debt if borrow else 0,
        total_collateral=borrow.collateral_deposited if borrow else 0,
        health_factor=get_user_health_factor(view, account),
    )


def get_available_liquidity(view: LedgerView) -> int:
    return load_lending_pool(view).available_liquidity


def get_max_borrowable_amount(view: LedgerView, account: str, collateral_amount: int) -> int:
    """
    Additional amount account could owe if backed by collateral_amount.

    Counts current debt including unsettled interest; never negative.
    """
    require_non_negative(collateral_amount, "collateral_amount")
    pool = load_lending_pool(view)
    return calculate_max_borrowable(collateral_amount, pool.collateral_factor, get_current_debt(view, account))


def get_protocol_risk_metrics(view: LedgerView, caller: str) -> RiskMetrics:
    require_admin(view, caller)
    pool = load_lending_pool(view)
    return RiskMetrics(
        tvl=pool.total_supplied,
        total_debt=pool.total_borrowed,
        utilization=pool.utilization_rate,
        risk_score=calculate_risk_score(pool.utilization_rate),
    )


def find_liquidatable_positions(view: LedgerView, caller: str, accounts: Iterable[str]) -> List[str]:
    """Accounts among the given ones whose health factor is below 100, in input order."""
    require_admin(view, caller)
    return [account for account in accounts if is_liquidatable(view, account)]


# ============================================================================
# ADMINISTRATION
# ============================================================================

def compute_initialize_lending_pool(
    view: LedgerView,
    caller: str,
    supply_rate: int,
    borrow_rate: int,
    collateral_factor: int,
    reserve_factor: int,
) -> PendingTransaction:
    """
    Create the lending pool and install the default liquidation parameters.

    Raises:
        AuthorizationError: If caller is not the admin
        AlreadyInitialized: If the pool exists
        ValidationError: If a rate does not fit in 32 bits, the collateral
                         factor is outside 1..10000 or the reserve factor
                         outside 0..10000
    """
    admin = require_admin(view, caller)
    if view.get_record(LENDING_POOL_KEY) is not None:
        raise AlreadyInitialized("lending pool already initialized")
    require_u32(supply_rate, "supply_rate")
    require_u32(borrow_rate, "borrow_rate")
    require_basis_points(collateral_factor, "collateral_factor", minimum=1)
    require_basis_points(reserve_factor, "reserve_factor")

    pool = LendingPool(
        total_supplied=0,
        total_borrowed=0,
        supply_rate=supply_rate,
        borrow_rate=borrow_rate,
        utilization_rate=0,
        reserve_factor=reserve_factor,
        last_update_ledger=view.current_ledger,
        collateral_factor=collateral_factor,
    )
    return build_transaction(
        view,
        [],
        [
            record_change(view, LENDING_POOL_KEY, pool),
            record_change(view, LIQUIDATION_PARAMS_KEY, LiquidationParams()),
        ],
        [Event("initialize_lending", admin)],
        _admin_origin(admin, "initialize_lending_pool"),
    )


def compute_update_lending_rates(
    view: LedgerView, caller: str, supply_rate: int, borrow_rate: int
) -> PendingTransaction:
    """Set both rates. The pool accrues at the old rates up to now first."""
    admin = require_admin(view, caller)
    require_u32(supply_rate, "supply_rate")
    require_u32(borrow_rate, "borrow_rate")
    pool = replace(load_accrued_pool(view), supply_rate=supply_rate, borrow_rate=borrow_rate)
    return build_transaction(
        view,
        [],
        [record_change(view, LENDING_POOL_KEY, pool)],
        [Event("update_lending_rates", admin, supply_rate)],
        _admin_origin(admin, "update_lending_rates"),
    )


def compute_update_liquidation_params(
    view: LedgerView, caller: str, threshold: int, penalty: int
) -> PendingTransaction:
    admin = require_admin(view, caller)
    load_lending_pool(view)
    require_basis_points(threshold, "liquidation_threshold", minimum=1)
    require_basis_points(penalty, "liquidation_penalty")
    return build_transaction(
        view,
        [],
        [record_change(view, LIQUIDATION_PARAMS_KEY, LiquidationParams(threshold, penalty))],
        [Event("update_liquidation_params", admin, threshold)],
        _admin_origin(admin, "update_liquidation_params"),
    )


def compute_update_collateral_factor(view: LedgerView, caller: str, collateral_factor: int) -> PendingTransaction:
    admin = require_admin(view, caller)
    require_basis_points(collateral_factor, "collateral_factor", minimum=1)
    pool = replace(load_accrued_pool(view), collateral_factor=collateral_factor)
    return build_transaction(
        view,
        [],
        [record_change(view, LENDING_POOL_KEY, pool)],
        [Event("update_collateral_factor", admin, collateral_factor)],
        _admin_origin(admin, "update_collateral_factor"),
    )


def compute_update_dynamic_rates(
    view: LedgerView, caller: str, model: RateModel = DEFAULT_RATE_MODEL
) -> PendingTransaction:
    """
    Reprice both rates from current utilization along the jump-rate curve.

    The event amount is the new borrow rate.
    """
    admin = require_admin(view, caller)
    pool = load_accrued_pool(view)
    borrow_rate = calculate_borrow_rate(pool.utilization_rate, model)
    supply_rate = calculate_supply_rate(borrow_rate, pool.utilization_rate, pool.reserve_factor)
    updated = replace(pool, borrow_rate=borrow_rate, supply_rate=supply_rate)
    return build_transaction(
        view,
        [],
        [record_change(view, LENDING_POOL_KEY, updated)],
        [Event("dynamic_rate_update", admin, borrow_rate)],
        _admin_origin(admin, "update_dynamic_rates"),
    )


def compute_withdraw_reserves(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    """
    Pay reserves out to the admin.

    The withdrawn amount leaves total_supplied, so reserves shrink with it.

    Raises:
        InsufficientReserves: If amount exceeds the available reserves
    """
    admin = require_admin(view, caller)
    require_positive(amount)
    pool = load_accrued_pool(view)
    reserves = calculate_reserves(pool.total_supplied, pool.total_borrowed, pool.reserve_factor)
    if amount > reserves:
        raise InsufficientReserves(f"requested {amount}, available reserves {reserves}")
    updated = with_utilization(replace(pool, total_supplied=pool.total_supplied - amount))
    return build_transaction(
        view,
        list(optional_move(amount, PROTOCOL_WALLET, admin, "withdraw_reserves")),
        [record_change(view, LENDING_POOL_KEY, updated)],
        [Event("withdraw_reserves", admin, amount)],
        _admin_origin(admin, "withdraw_reserves"),
        result=amount,
    )


def compute_emergency_withdraw_lending_pool(view: LedgerView, caller: str) -> PendingTransaction:
    """
    Sweep the whole protocol balance to the admin and zero the pool totals.

    User positions are left as recorded. The result is the amount swept.
    With nothing to sweep the pool is left untouched and no event is emitted.
    """
    admin = require_admin(view, caller)
    balance = view.get_balance(PROTOCOL_WALLET)
    if balance <= 0:
        return empty_pending_transaction(view, result=0)
    pool = view.get_record(LENDING_POOL_KEY)
    changes = []
    if pool is not None:
        drained = replace(
            pool,
            total_supplied=0,
            total_borrowed=0,
            utilization_rate=0,
            last_update_ledger=view.current_ledger,
        )
        changes.append(record_change(view, LENDING_POOL_KEY, drained))
    return build_transaction(
        view,
        list(optional_move(balance, PROTOCOL_WALLET, admin, "emergency_withdraw_lending")),
        changes,
        [Event("emergency_withdraw_lending", admin, balance)],
        _admin_origin(admin, "emergency_withdraw_lending_pool"),
        result=balance,
    )


def compute_accrue_interest(view: LedgerView, caller: str) -> PendingTransaction:
    """Persist pool accrual up to now. Anyone may trigger it."""
    pool = load_accrued_pool(view)
    return build_transaction(
        view,
        [],
        [record_change(view, LENDING_POOL_KEY, pool)],
        [Event("manual_interest_accrual", caller, 0)],
        TransactionOrigin(OriginType.ENGINE, caller, "accrue_lending_interest"),
    )


# ============================================================================
# SUPPLY / WITHDRAW
# ============================================================================

def compute_supply(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    """
    Deposit amount into the pool.

    Raises:
        ValidationError: If amount <= 0
        AccountFrozen: If caller is frozen
        InsufficientFunds: If caller's balance is below amount
        NotInitialized: If the pool does not exist
    """
    require_positive(amount)
    ensure_not_frozen(view, caller)
    _check_balance(view, caller, amount)
    now = view.current_ledger
    pool = load_accrued_pool(view)

    supply = load_user_supply(view, caller) or UserSupply(amount=0, last_update_ledger=now)
    supply = settle_supply(supply, pool, now)
    supply = replace(supply, amount=supply.amount + amount)
    pool = with_utilization(replace(pool, total_supplied=pool.total_supplied + amount))

    return build_transaction(
        view,
        list(optional_move(amount, caller, PROTOCOL_WALLET, "supply")),
        [record_change(view, supply_key(caller), supply), record_change(view, LENDING_POOL_KEY, pool)],
        [Event("supply", caller, amount)],
        _user_origin(caller, "supply"),
    )


def compute_withdraw(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    """
    Withdraw amount of caller's supply, interest first.

    Raises:
        RecordNotFound: If caller has no supply position
        InsufficientFunds: If amount exceeds principal plus accrued interest
        InsufficientLiquidity: If the pool's idle funds cannot cover amount
    """
    require_positive(amount)
    ensure_not_frozen(view, caller)
    now = view.current_ledger
    pool = load_accrued_pool(view)
    supply = load_user_supply(view, caller)
    if supply is None:
        raise RecordNotFound(f"no supply position for {caller}")
    supply = settle_supply(supply, pool, now)
    if amount > supply.balance:
        raise InsufficientFunds(f"cannot withdraw {amount}, supplied balance is {supply.balance}")
    if amount > pool.available_liquidity:
        raise InsufficientLiquidity(
            f"cannot withdraw {amount}, pool liquidity is {pool.available_liquidity}"
        )

    from_interest = min(amount, supply.accrued_interest)
    supply = replace(
        supply,
        accrued_interest=supply.accrued_interest - from_interest,
        amount=supply.amount - (amount - from_interest),
    )
    new_supply = None if supply.balance == 0 else supply
    pool = with_utilization(replace(pool, total_supplied=pool.total_supplied - amount))

    return build_transaction(
        view,
        list(optional_move(amount, PROTOCOL_WALLET, caller, "withdraw")),
        [record_change(view, supply_key(caller), new_supply), record_change(view, LENDING_POOL_KEY, pool)],
        [Event("withdraw", caller, amount)],
        _user_origin(caller, "withdraw"),
        result=amount,
    )


# ============================================================================
# BORROW / REPAY
# ============================================================================

def compute_borrow(view: LedgerView, caller: str, amount: int, collateral_amount: int) -> PendingTransaction:
    """
    Borrow amount, depositing collateral_amount alongside.

    The position after the borrow must satisfy
    collateral * collateral_factor >= debt * 10000.

    Raises:
        ValidationError: If amount <= 0 or collateral_amount < 0
        AccountFrozen: If caller is frozen
        InsufficientFunds: If caller cannot pay the collateral
        InsufficientLiquidity: If the pool cannot lend amount
        InsufficientCollateral: If total collateral would not back the debt
    """
    require_positive(amount)
    require_non_negative(collateral_amount, "collateral_amount")
    ensure_not_frozen(view, caller)
    _check_balance(view, caller, collateral_amount)
    now = view.current_ledger
    pool = load_accrued_pool(view)
    if amount > pool.available_liquidity:
        raise InsufficientLiquidity(
            f"cannot borrow {amount}, pool liquidity is {pool.available_liquidity}"
        )

    borrow = load_user_borrow(view, caller) or UserBorrow(amount=0, last_update_ledger=now)
    borrow = settle_borrow(borrow, pool, now)
    new_debt = borrow.debt + amount
    total_collateral = borrow.collateral_deposited + collateral_amount
    if not is_adequately_collateralized(total_collateral, new_debt, pool.collateral_factor):
        required = calculate_required_collateral(new_debt, pool.collateral_factor)
        raise InsufficientCollateral(
            f"debt {new_debt} requires collateral {required}, have {total_collateral}"
        )

    borrow = replace(borrow, amount=borrow.amount + amount, collateral_deposited=total_collateral)
    pool = with_utilization(replace(pool, total_borrowed=pool.total_borrowed + amount))
    moves = list(optional_move(collateral_amount, caller, PROTOCOL_WALLET, "borrow_collateral"))
    moves.extend(optional_move(amount, PROTOCOL_WALLET, caller, "borrow"))

    return build_transaction(
        view,
        moves,
        [record_change(view, borrow_key(caller), borrow), record_change(view, LENDING_POOL_KEY, pool)],
        [Event("borrow", caller, amount)],
        _user_origin(caller, "borrow"),
    )


def compute_repay(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    """
    Repay up to amount of caller's debt, interest first.

    Paying off the whole debt returns all collateral and closes the
    position. The result is the amount actually repaid.

    Raises:
        RecordNotFound: If caller has no borrow position
    """
    require_positive(amount)
    ensure_not_frozen(view, caller)
    _check_balance(view, caller, amount)
    now = view.current_ledger
    pool = load_accrued_pool(view)
    borrow = load_user_borrow(view, caller)
    if borrow is None:
        raise RecordNotFound(f"no borrow position for {caller}")
    borrow = settle_borrow(borrow, pool, now)

    actual = min(amount, borrow.debt)
    borrow = _pay_down(borrow, actual)
    pool = _reduce_borrowed(pool, actual)
    moves = list(optional_move(actual, caller, PROTOCOL_WALLET, "repay"))
    if borrow.debt == 0:
        moves.extend(optional_move(borrow.collateral_deposited, PROTOCOL_WALLET, caller, "repay_collateral"))
        new_borrow = None
    else:
        new_borrow = borrow

    return build_transaction(
        view,
        moves,
        [record_change(view, borrow_key(caller), new_borrow), record_change(view, LENDING_POOL_KEY, pool)],
        [Event("repay", caller, actual)],
        _user_origin(caller, "repay"),
        result=actual,
    )


# ============================================================================
# COLLATERAL
# ============================================================================

def compute_add_collateral(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    require_positive(amount)
    ensure_not_frozen(view, caller)
    _check_balance(view, caller, amount)
    now = view.current_ledger
    pool = load_accrued_pool(view)
    borrow = load_user_borrow(view, caller)
    if borrow is None:
        raise RecordNotFound(f"no borrow position for {caller}")
    borrow = settle_borrow(borrow, pool, now)
    borrow = replace(borrow, collateral_deposited=borrow.collateral_deposited + amount)

    return build_transaction(
        view,
        list(optional_move(amount, caller, PROTOCOL_WALLET, "add_collateral")),
        [record_change(view, borrow_key(caller), borrow), record_change(view, LENDING_POOL_KEY, pool)],
        [Event("add_collateral", caller, amount)],
        _user_origin(caller, "add_collateral"),
    )


def compute_remove_collateral(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    """
    Withdraw amount of collateral from caller's borrow position.

    Raises:
        RecordNotFound: If caller has no borrow position
        InsufficientCollateral: If amount exceeds the deposited collateral
        UnsafePosition: If the remaining collateral would not back the debt
    """
    require_positive(amount)
    ensure_not_frozen(view, caller)
    now = view.current_ledger
    pool = load_accrued_pool(view)
    borrow = load_user_borrow(view, caller)
    if borrow is None:
        raise RecordNotFound(f"no borrow position for {caller}")
    borrow = settle_borrow(borrow, pool, now)
    if amount > borrow.collateral_deposited:
        raise InsufficientCollateral(
            f"cannot remove {amount}, deposited collateral is {borrow.collateral_deposited}"
        )
    remaining = borrow.collateral_deposited - amount
    if not is_adequately_collateralized(remaining, borrow.debt, pool.collateral_factor):
        raise UnsafePosition(
            f"removing {amount} would leave {remaining} collateral against debt {borrow.debt}; "
            f"position would become unsafe"
        )

    borrow = replace(borrow, collateral_deposited=remaining)
    new_borrow = None if borrow.debt == 0 and remaining == 0 else borrow
    return build_transaction(
        view,
        list(optional_move(amount, PROTOCOL_WALLET, caller, "remove_collateral")),
        [record_change(view, borrow_key(caller), new_borrow), record_change(view, LENDING_POOL_KEY, pool)],
        [Event("remove_collateral", caller, amount)],
        _user_origin(caller, "remove_collateral"),
        result=amount,
    )


# ============================================================================
# LIQUIDATION
# ============================================================================

def compute_liquidation(view: LedgerView, caller: str, borrower: str, repay_amount: int) -> PendingTransaction:
    """
    Repay part of an unhealthy position's debt in exchange for its collateral.

    The repayment is capped at half of the total debt. The liquidator
    receives the repaid amount plus the liquidation penalty in collateral.
    The result is the amount actually repaid.

    Raises:
        AccountFrozen: If the liquidator is frozen
        InsufficientFunds: If the liquidator cannot pay repay_amount
        RecordNotFound: If borrower has no position
        PositionHealthy: If borrower's health factor is not below 100
        ValidationError: If the half-debt cap rounds down to zero
        InsufficientCollateral: If the seizure exceeds deposited collateral
    """
    require_positive(repay_amount, "repay_amount")
    ensure_not_frozen(view, caller)
    _check_balance(view, caller, repay_amount)
    now = view.current_ledger
    pool = load_accrued_pool(view)
    borrow = load_user_borrow(view, borrower)
    if borrow is None:
        raise RecordNotFound(f"no borrow position for {borrower}")
    borrow = settle_borrow(borrow, pool, now)
    params = load_liquidation_params(view)

    health = calculate_position_health(borrow, params)
    if health >= LIQUIDATION_HEALTH_THRESHOLD:
        raise PositionHealthy(f"position of {borrower} is healthy (health factor {health})")

    actual = min(repay_amount, calculate_max_liquidation(borrow.debt))
    if actual == 0:
        raise ValidationError(f"debt of {borrower} is too small to liquidate (debt {borrow.debt})")
    seized = calculate_seizure(actual, params.penalty)
    if seized > borrow.collateral_deposited:
        raise InsufficientCollateral(
            f"cannot seize {seized}, deposited collateral is {borrow.collateral_deposited}"
        )

    borrow = replace(_pay_down(borrow, actual), collateral_deposited=borrow.collateral_deposited - seized)
    pool = _reduce_borrowed(pool, actual)
    moves = list(optional_move(actual, caller, PROTOCOL_WALLET, "liquidate_repay"))
    moves.extend(optional_move(seized, PROTOCOL_WALLET, caller, "liquidate_seize"))
    if borrow.debt == 0:
        moves.extend(optional_move(borrow.collateral_deposited, PROTOCOL_WALLET, borrower, "liquidate_refund"))
        new_borrow = None
    else:
        new_borrow = borrow

    return build_transaction(
        view,
        moves,
        [record_change(view, borrow_key(borrower), new_borrow), record_change(view, LENDING_POOL_KEY, pool)],
        [Event("liquidate", caller, actual, subject=borrower)],
        _user_origin(caller, "liquidate"),
        result=actual,
    )


def validate_batch_size(targets) -> None:
    if len(targets) > MAX_BATCH_LIQUIDATIONS:
        raise ValidationError(
            f"batch liquidation accepts at most {MAX_BATCH_LIQUIDATIONS} targets, got {len(targets)}"
        )


def compute_batch_liquidation_summary(view: LedgerView, caller: str, total_repaid: int) -> PendingTransaction:
    """Summary event for a batch whose targets were liquidated one by one."""
    return build_transaction(
        view,
        [],
        events=[Event("batch_liquidate", caller, total_repaid)],
        origin=_user_origin(caller, "batch_liquidate"),
        result=total_repaid,
    )
