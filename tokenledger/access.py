"""
access.py - Access Registry

Holds the administrator identity and the per-account frozen flag.

Authorization model:
    Every operation receives the authenticated caller explicitly. An
    operation is either self-authorized (the caller acts on its own account)
    or admin-authorized (the caller must be the stored admin). No operation
    infers the caller from state.

Frozen accounts:
    A frozen account cannot send value through transfer, transfer_from,
    burn, burn_from or any lending operation. The flag is set and cleared
    by the admin, and as a side effect of vesting creation and completion.
    Absence of the record means not frozen.
"""

from __future__ import annotations
from typing import Optional

from .core import (
    LedgerView, PendingTransaction, StateChange, Event, TransactionOrigin, OriginType,
    AuthorizationError, NotInitialized, AccountFrozen,
    admin_key, frozen_key, record_change, build_transaction,
)


def get_admin(view: LedgerView) -> Optional[str]:
    return view.get_record(admin_key())


def require_auth(caller: str, principal: str) -> None:
    """Raise AuthorizationError unless caller is the required principal."""
    if caller != principal:
        raise AuthorizationError(f"{caller} is not authorized to act for {principal}")


def require_admin(view: LedgerView, caller: str) -> str:
    """
    Check that caller is the stored admin and return the admin id.

    Raises:
        NotInitialized: If no admin has been set
        AuthorizationError: If caller is not the admin
    """
    admin = get_admin(view)
    if admin is None:
        raise NotInitialized("admin not set")
    if caller != admin:
        raise AuthorizationError(f"{caller} is not the admin")
    return admin


def is_frozen(view: LedgerView, account: str) -> bool:
    return bool(view.get_record(frozen_key(account)))


def ensure_not_frozen(view: LedgerView, account: str) -> None:
    if is_frozen(view, account):
        raise AccountFrozen(f"account {account} is frozen")


def frozen_change(view: LedgerView, account: str, frozen: bool) -> Optional[StateChange]:
    """Record change that sets or clears the frozen flag, None if already so."""
    if frozen == is_frozen(view, account):
        return None
    return record_change(view, frozen_key(account), True if frozen else None)


def _compute_set_frozen(
    view: LedgerView, caller: str, account: str, frozen: bool, event_type: str
) -> PendingTransaction:
    require_admin(view, caller)
    return build_transaction(
        view,
        [],
        [frozen_change(view, account, frozen)],
        [Event(event_type, caller, 0, subject=account)],
        TransactionOrigin(OriginType.ADMIN, caller, event_type),
    )


def compute_freeze_account(view: LedgerView, caller: str, account: str) -> PendingTransaction:
    """Admin freezes an account. Freezing a frozen account only emits the event."""
    return _compute_set_frozen(view, caller, account, True, "freeze_account")


def compute_unfreeze_account(view: LedgerView, caller: str, account: str) -> PendingTransaction:
    return _compute_set_frozen(view, caller, account, False, "unfreeze_account")
