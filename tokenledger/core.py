"""
Core types and pure functions for the protocol ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Keys: DataKey and StateKey, the tagged-union keys of the record store
3. Immutable data structures: Move, StateChange, Event, PendingTransaction, Transaction
4. Exceptions: LedgerError and the error taxonomy shared by every engine
5. Validation helpers for amounts, basis points and 32-bit counters

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.

ARCHITECTURE:
    Engines (vesting, staking, lending) never write state. Each operation is a
    compute_* function that reads a LedgerView, validates, and returns a
    PendingTransaction describing balance moves, record changes and events.
    Ledger.execute() is the single place where a PendingTransaction becomes
    state, and it applies all of it or none of it.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, is_dataclass, replace
from enum import Enum
import hashlib
from typing import (
    Any, Dict, FrozenSet, List, Optional, Protocol, Set, Tuple,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and redemption.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# The protocol's own account. Holds staked principal, reward funding,
# lending liquidity and deposited collateral.
PROTOCOL_WALLET = "protocol"

# All rates, factors and thresholds are expressed in basis points.
BASIS_POINTS = 10_000

# One year of logical ticks at the nominal five-second tick rate.
LEDGERS_PER_YEAR = 365 * 24 * 60 * 12

# The logical clock is a 32-bit counter.
U32_MAX = 2**32 - 1
MAX_LEDGER_SEQUENCE = U32_MAX

# Health factor reported for positions without debt.
I128_MAX = 2**127 - 1
HEALTH_FACTOR_MAX = I128_MAX

# Positions with a health factor below this value can be liquidated.
LIQUIDATION_HEALTH_THRESHOLD = 100

# A single liquidation repays at most half of the outstanding debt.
MAX_LIQUIDATION_SHARE_BP = 5_000

MAX_BATCH_LIQUIDATIONS = 10

DEFAULT_LIQUIDATION_THRESHOLD = 8_000
DEFAULT_LIQUIDATION_PENALTY = 500

# Reserved for a reward-precision parameter. Not used by any calculation.
REWARD_PRECISION = 10_000

MAX_DECIMALS = 18


# ============================================================================
# RECORD KEYS
# ============================================================================

class DataKey(Enum):
    """Tag of a record key. Each engine owns its own tags."""
    ADMIN = "admin"
    METADATA = "metadata"
    FROZEN = "frozen"
    ALLOWANCE = "allowance"
    VESTING_SCHEDULE = "vesting_schedule"
    STAKING_ADMIN = "staking_admin"
    POOL_INFO = "pool_info"
    STAKE_INFO = "stake_info"
    LENDING_POOL = "lending_pool"
    LIQUIDATION_PARAMS = "liquidation_params"
    USER_SUPPLY = "user_supply"
    USER_BORROW = "user_borrow"


@dataclass(frozen=True, slots=True)
class StateKey:
    """
    Key into the flat record store.

    Singleton records (ADMIN, POOL_INFO, LENDING_POOL, ...) use only the tag.
    Per-account records carry the account, and allowances also carry the spender.
    """
    kind: DataKey
    account: Optional[str] = None
    spender: Optional[str] = None

    def __repr__(self) -> str:
        parts = [self.kind.value]
        if self.account is not None:
            parts.append(self.account)
        if self.spender is not None:
            parts.append(self.spender)
        return f"Key({':'.join(parts)})"


def admin_key() -> StateKey:
    return StateKey(DataKey.ADMIN)


def frozen_key(account: str) -> StateKey:
    return StateKey(DataKey.FROZEN, account)


def allowance_key(owner: str, spender: str) -> StateKey:
    return StateKey(DataKey.ALLOWANCE, owner, spender)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Engines, validators and queries use this protocol to read balances and
    records without the ability to modify them. The Ledger class implements
    this protocol but also provides mutation methods. For testing, FakeView
    provides a truly immutable implementation.
    """

    @property
    def current_ledger(self) -> int:
        """Return the current value of the logical clock."""
        ...

    @property
    def next_sequence(self) -> int:
        """Return the sequence number the next committed transaction will get."""
        ...

    def get_balance(self, account: str) -> int:
        """Return the balance of an account. Unknown accounts hold 0."""
        ...

    def get_record(self, key: StateKey) -> Any:
        """Return the record stored under key, or None if absent."""
        ...

    def list_accounts(self) -> Set[str]:
        """Return every account that has ever held a balance."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: intent_id was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation (insufficient balance, stale
              records, future ledger).
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Self-authorized account operation
    ADMIN = "admin"                       # Admin-authorized operation
    ENGINE = "engine"                     # Vesting, staking or lending engine
    SYSTEM = "system"                     # Issuance, initial setup


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class AuthorizationError(LedgerError):
    """Raised when the caller is not the principal an operation requires."""
    pass


class ValidationError(LedgerError, ValueError):
    """Raised for malformed arguments: bad amounts, schedule bounds, rates."""
    pass


class StatePreconditionError(LedgerError):
    """Raised when the stored state does not allow the operation."""
    pass


class NotInitialized(StatePreconditionError):
    """Raised when operating on a singleton record that was never initialized."""
    pass


class AlreadyInitialized(StatePreconditionError):
    """Raised when initializing a singleton record a second time."""
    pass


class AlreadyExists(StatePreconditionError):
    """Raised when creating a per-account record that already exists."""
    pass


class RecordNotFound(StatePreconditionError):
    """Raised when a required per-account record is missing."""
    pass


class StakeLocked(StatePreconditionError):
    """Raised when unstaking before the minimum stake duration has elapsed."""
    pass


class EconomicError(LedgerError):
    """Base class for failures caused by balances, liquidity or solvency."""
    pass


class InsufficientFunds(EconomicError):
    """Raised when an account or position does not hold enough value."""
    pass


class InsufficientAllowance(EconomicError):
    """Raised when a spender's allowance does not cover the amount."""
    pass


class InsufficientLiquidity(EconomicError):
    """Raised when the lending pool cannot pay out the requested amount."""
    pass


class InsufficientCollateral(EconomicError):
    """Raised when collateral does not cover a debt or a seizure."""
    pass


class UnsafePosition(EconomicError):
    """Raised when removing collateral would leave a position under-collateralized."""
    pass


class PositionHealthy(EconomicError):
    """Raised when liquidating a position whose health factor is not below 100."""
    pass


class InsufficientReserves(EconomicError):
    """Raised when a reserve withdrawal exceeds the available reserves."""
    pass


class NothingToClaim(EconomicError):
    """Raised when a claim would pay out nothing."""
    pass


class AccountFrozen(EconomicError):
    """Raised when a frozen account attempts an outgoing value movement."""
    pass


class TransactionRejected(LedgerError):
    """Raised when the ledger refuses to apply a computed transaction."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def _require_int(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")


def require_positive(value: int, name: str = "amount") -> int:
    _require_int(value, name)
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")
    return value


def require_non_negative(value: int, name: str = "amount") -> int:
    _require_int(value, name)
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def require_u32(value: int, name: str) -> int:
    _require_int(value, name)
    if not 0 <= value <= U32_MAX:
        raise ValidationError(f"{name} must fit in 32 bits, got {value}")
    return value


def require_basis_points(value: int, name: str, minimum: int = 0) -> int:
    _require_int(value, name)
    if not minimum <= value <= BASIS_POINTS:
        raise ValidationError(
            f"{name} must be between {minimum} and {BASIS_POINTS} basis points, got {value}"
        )
    return value


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Account that authorized the operation
        event_type: Operation name (e.g., "supply", "claim_vesting")
    """
    origin_type: OriginType
    source_id: str
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two accounts.

    Moves are the only way balances change. Engines debit and credit the
    shared balance store through moves directly; account-level checks such as
    frozen flags are applied by the operation that builds the move.

    Attributes:
        amount: The amount to transfer (positive integer).
        source: The account debited.
        dest: The account credited.
        contract_id: Identifier of the operation generating this move.
    """
    amount: int
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"Move amount must be int, got {type(self.amount)}")
        if self.amount <= 0:
            raise ValueError(f"Move amount must be positive, got {self.amount}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.amount}: {self.source}→{self.dest})"


def optional_move(amount: int, source: str, dest: str, contract_id: str) -> Tuple[Move, ...]:
    """
    Return a one-element tuple with the move, or () when nothing moves.

    Zero amounts and self-transfers leave balances unchanged, so they
    produce no move at all.
    """
    if amount == 0 or source == dest:
        return ()
    return (Move(amount, source, dest, contract_id),)


@dataclass(frozen=True, slots=True)
class StateChange:
    """
    Record of a keyed-record change for transaction logging and replay.

    Attributes:
        key: Record key
        old_value: Record before the change (None if it did not exist)
        new_value: Record after the change (None removes the record)
    """
    key: StateKey
    old_value: Any
    new_value: Any

    @property
    def is_removal(self) -> bool:
        return self.new_value is None


def record_change(view: LedgerView, key: StateKey, new_value: Any) -> Optional[StateChange]:
    """Build a StateChange against the current record, or None if nothing changes."""
    old_value = view.get_record(key)
    if old_value is None and new_value is None:
        return None
    return StateChange(key=key, old_value=old_value, new_value=new_value)


@dataclass(frozen=True, slots=True)
class Event:
    """
    Immutable notification record published when a transaction commits.

    Attributes:
        event_type: Operation name (e.g., "stake", "liquidate")
        actor: Account that performed the operation
        amount: Natural numeric payload, 0 when there is none
        subject: Account acted upon, when different from the actor
        ledger: Logical clock value when the event was produced
    """
    event_type: str
    actor: str
    amount: int = 0
    subject: Optional[str] = None
    ledger: int = 0


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Ensures deterministic serialization regardless of dict insertion order
    or nested structure depth. Frozen dataclass records serialize field by
    field, tagged with their class name.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, Enum):
        return f"E:{type(value).__name__}.{value.name}"
    if is_dataclass(value) and not isinstance(value, type):
        body = ",".join(
            f"{f.name}={_canonicalize(getattr(value, f.name))}" for f in fields(value)
        )
        return f"{type(value).__name__}({body})"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[StateChange, ...],
    events: Tuple[Event, ...],
    origin: TransactionOrigin,
    sequence: int,
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    The hash covers the ordered moves, record changes and events, the origin,
    and the sequence number the transaction was built against. Two identical
    operations issued one after the other therefore get different ids, while
    re-submitting the same PendingTransaction is detected as a repeat.
    """
    content_parts = [
        f"origin:{origin.origin_type.value}:{origin.source_id}:{origin.event_type or ''}",
        f"sequence:{sequence}",
    ]
    for m in moves:
        content_parts.append(f"move:{m.amount}|{m.source}|{m.dest}|{m.contract_id}")
    for sc in state_changes:
        content_parts.append(
            f"state_change:{_canonicalize(sc.key)}|"
            f"{_canonicalize(sc.old_value)}|{_canonicalize(sc.new_value)}"
        )
    for e in events:
        content_parts.append(f"event:{_canonicalize(e)}")

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Created by compute_* functions and submitted to the ledger for execution.

    Lifecycle:
    1. An engine builds a PendingTransaction against a LedgerView
    2. intent_id is auto-computed from content (deterministic hash)
    3. Ledger.execute() validates and applies it, creating a Transaction record

    Attributes:
        moves: Ordered balance transfers
        state_changes: Ordered record writes and removals
        events: Notifications published if the transaction commits
        origin: Who/what created this transaction and why
        ledger: Logical clock value the transaction was computed at
        sequence: Ledger sequence number the transaction was computed against
        result: Value the operation returns to its caller (e.g. amount claimed)
        intent_id: Content-addressable hash of the transaction intent
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[StateChange, ...]
    events: Tuple[Event, ...]
    origin: TransactionOrigin
    ledger: int
    sequence: int = 0
    result: Optional[int] = None
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.moves, self.state_changes, self.events, self.origin, self.sequence
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if there are no moves, no record changes and no events."""
        return not self.moves and not self.state_changes and not self.events

    def __repr__(self) -> str:
        return (
            f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} changes, "
            f"{len(self.events)} events, {self.origin})"
        )


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[Optional[StateChange]]] = None,
    events: Optional[List[Event]] = None,
    origin: Optional[TransactionOrigin] = None,
    result: Optional[int] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves, record changes and events.

    This is the standard way to create transactions. None entries in
    state_changes (as returned by record_change for no-op writes) are dropped.
    Events are stamped with the view's current ledger.

    Example:
        def compute_payment(view, payer, payee, amount):
            moves = [Move(amount, payer, payee, "payment")]
            return build_transaction(view, moves, events=[Event("payment", payer, amount)])
    """
    if origin is None:
        origin = TransactionOrigin(origin_type=OriginType.ENGINE, source_id="engine")

    now = view.current_ledger
    return PendingTransaction(
        moves=tuple(moves),
        state_changes=tuple(sc for sc in (state_changes or ()) if sc is not None),
        events=tuple(replace(e, ledger=now) for e in (events or ())),
        origin=origin,
        ledger=now,
        sequence=view.next_sequence,
        result=result,
    )


def empty_pending_transaction(view: LedgerView, result: Optional[int] = None) -> PendingTransaction:
    """Create a PendingTransaction that changes nothing."""
    return PendingTransaction(
        moves=(),
        state_changes=(),
        events=(),
        origin=TransactionOrigin(OriginType.ENGINE, "noop"),
        ledger=view.current_ledger,
        sequence=view.next_sequence,
        result=result,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Balance transfers that were applied
        state_changes: Record writes and removals that were applied
        events: Notifications that were published
        origin: Who/what created this transaction and why
        ledger: Logical clock value the transaction was computed at
        intent_id: Content hash (from PendingTransaction)
        exec_id: Unique execution identifier
        ledger_name: Name of the ledger that executed this
        sequence_number: Monotonic sequence within the ledger
        result: Value returned to the caller, if any
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[StateChange, ...]
    events: Tuple[Event, ...]
    origin: TransactionOrigin
    ledger: int
    intent_id: str
    exec_id: str
    ledger_name: str
    sequence_number: int
    result: Optional[int] = None
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves and not self.state_changes and not self.events:
            raise ValueError("Transaction must have moves, state_changes or events")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   ledger         : ' + str(self.ledger))}│",
            f"│{pad('   ledger_name    : ' + self.ledger_name)}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + str(self.origin))}│",
        ]
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│")
        for i, move in enumerate(self.moves):
            lines.append(f"│{pad(f'   [{i}] {move.amount}: {move.source} → {move.dest}')}│")
        if self.state_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' State Changes (' + str(len(self.state_changes)) + '):')}│")
            for sc in self.state_changes:
                lines.append(f"│{pad(f'   {sc.key!r}: {sc.old_value!r} → {sc.new_value!r}')}│")
        if self.events:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Events (' + str(len(self.events)) + '):')}│")
            for e in self.events:
                lines.append(f"│{pad(f'   {e.event_type} actor={e.actor} amount={e.amount}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)
