"""
token.py - Base Token Primitives

The fungible-token surface of the balance ledger: one-time initialization,
admin minting and hand-over, allowances with an expiration ledger, and
transfer / burn with their delegated (allowance-spending) variants.

Every function returns a PendingTransaction; nothing here mutates state.
Issuance and redemption move value against SYSTEM_WALLET, so balances
always sum to zero.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .core import (
    LedgerView, PendingTransaction, StateChange, Event, DataKey, StateKey,
    TransactionOrigin, OriginType, SYSTEM_WALLET, MAX_DECIMALS,
    ValidationError, AlreadyInitialized, NotInitialized,
    InsufficientFunds, InsufficientAllowance,
    admin_key, allowance_key, optional_move, record_change, build_transaction,
    require_non_negative, require_u32,
)
from .access import require_admin, ensure_not_frozen


@dataclass(frozen=True, slots=True)
class TokenMetadata:
    decimals: int
    name: str
    symbol: str


@dataclass(frozen=True, slots=True)
class AllowanceValue:
    """
    Spending allowance granted by an owner to a spender.

    The allowance reads as 0 once the ledger passes expiration_ledger.
    """
    amount: int
    expiration_ledger: int


METADATA_KEY = StateKey(DataKey.METADATA)


def _origin(caller: str, event_type: str, admin: bool = False) -> TransactionOrigin:
    origin_type = OriginType.ADMIN if admin else OriginType.USER_ACTION
    return TransactionOrigin(origin_type, caller, event_type)


def _check_balance(view: LedgerView, account: str, amount: int) -> None:
    balance = view.get_balance(account)
    if balance < amount:
        raise InsufficientFunds(f"{account} balance {balance} is less than {amount}")


# ============================================================================
# QUERIES
# ============================================================================

def get_metadata(view: LedgerView) -> TokenMetadata:
    metadata = view.get_record(METADATA_KEY)
    if metadata is None:
        raise NotInitialized("token not initialized")
    return metadata


def get_allowance(view: LedgerView, owner: str, spender: str) -> int:
    """Live allowance of spender over owner's balance; 0 if absent or expired."""
    allowance: Optional[AllowanceValue] = view.get_record(allowance_key(owner, spender))
    if allowance is None or view.current_ledger > allowance.expiration_ledger:
        return 0
    return allowance.amount


# ============================================================================
# ADMINISTRATION
# ============================================================================

def compute_initialize_token(
    view: LedgerView, admin: str, decimals: int, name: str, symbol: str
) -> PendingTransaction:
    """
    Install the admin and token metadata. Can only run once.

    Raises:
        AlreadyInitialized: If an admin is already set
        ValidationError: If decimals exceeds MAX_DECIMALS
    """
    if view.get_record(admin_key()) is not None:
        raise AlreadyInitialized("token already initialized")
    require_non_negative(decimals, "decimals")
    if decimals > MAX_DECIMALS:
        raise ValidationError(f"decimals must not exceed {MAX_DECIMALS}, got {decimals}")
    return build_transaction(
        view,
        [],
        [
            record_change(view, admin_key(), admin),
            record_change(view, METADATA_KEY, TokenMetadata(decimals, name, symbol)),
        ],
        [Event("initialize", admin)],
        _origin(admin, "initialize", admin=True),
    )


def compute_mint(view: LedgerView, caller: str, to: str, amount: int) -> PendingTransaction:
    require_admin(view, caller)
    require_non_negative(amount)
    return build_transaction(
        view,
        list(optional_move(amount, SYSTEM_WALLET, to, "mint")),
        events=[Event("mint", caller, amount, subject=to)],
        origin=_origin(caller, "mint", admin=True),
    )


def compute_set_admin(view: LedgerView, caller: str, new_admin: str) -> PendingTransaction:
    require_admin(view, caller)
    return build_transaction(
        view,
        [],
        [record_change(view, admin_key(), new_admin)],
        [Event("set_admin", caller, subject=new_admin)],
        _origin(caller, "set_admin", admin=True),
    )


# ============================================================================
# ALLOWANCES
# ============================================================================

def compute_approve(
    view: LedgerView, caller: str, spender: str, amount: int, expiration_ledger: int
) -> PendingTransaction:
    """
    Set spender's allowance over caller's balance.

    Raises:
        ValidationError: If amount is negative, or amount is positive and the
                         expiration ledger is already in the past
    """
    require_non_negative(amount)
    require_u32(expiration_ledger, "expiration_ledger")
    if amount > 0 and expiration_ledger < view.current_ledger:
        raise ValidationError(
            f"expiration_ledger {expiration_ledger} is before the current ledger "
            f"{view.current_ledger}"
        )
    return build_transaction(
        view,
        [],
        [record_change(view, allowance_key(caller, spender), AllowanceValue(amount, expiration_ledger))],
        [Event("approve", caller, amount, subject=spender)],
        _origin(caller, "approve"),
    )


def _spend_allowance(view: LedgerView, owner: str, spender: str, amount: int) -> Optional[StateChange]:
    available = get_allowance(view, owner, spender)
    if available < amount:
        raise InsufficientAllowance(
            f"allowance of {spender} over {owner} is {available}, needs {amount}"
        )
    if amount == 0:
        return None
    stored: AllowanceValue = view.get_record(allowance_key(owner, spender))
    return record_change(
        view,
        allowance_key(owner, spender),
        AllowanceValue(available - amount, stored.expiration_ledger),
    )


# ============================================================================
# TRANSFERS AND BURNS
# ============================================================================

def compute_transfer(view: LedgerView, caller: str, to: str, amount: int) -> PendingTransaction:
    require_non_negative(amount)
    ensure_not_frozen(view, caller)
    _check_balance(view, caller, amount)
    return build_transaction(
        view,
        list(optional_move(amount, caller, to, "transfer")),
        events=[Event("transfer", caller, amount, subject=to)],
        origin=_origin(caller, "transfer"),
    )


def compute_transfer_from(
    view: LedgerView, caller: str, owner: str, to: str, amount: int
) -> PendingTransaction:
    """Spender (caller) moves owner's funds to another account, consuming allowance."""
    require_non_negative(amount)
    ensure_not_frozen(view, owner)
    allowance_change = _spend_allowance(view, owner, caller, amount)
    _check_balance(view, owner, amount)
    return build_transaction(
        view,
        list(optional_move(amount, owner, to, "transfer_from")),
        [allowance_change],
        [Event("transfer", owner, amount, subject=to)],
        _origin(caller, "transfer_from"),
    )


def compute_burn(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    require_non_negative(amount)
    ensure_not_frozen(view, caller)
    _check_balance(view, caller, amount)
    return build_transaction(
        view,
        list(optional_move(amount, caller, SYSTEM_WALLET, "burn")),
        events=[Event("burn", caller, amount)],
        origin=_origin(caller, "burn"),
    )


def compute_burn_from(view: LedgerView, caller: str, owner: str, amount: int) -> PendingTransaction:
    require_non_negative(amount)
    ensure_not_frozen(view, owner)
    allowance_change = _spend_allowance(view, owner, caller, amount)
    _check_balance(view, owner, amount)
    return build_transaction(
        view,
        list(optional_move(amount, owner, SYSTEM_WALLET, "burn_from")),
        [allowance_change],
        [Event("burn", owner, amount, subject=caller)],
        _origin(caller, "burn_from"),
    )
