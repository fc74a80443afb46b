"""
ledger.py - Stateful Double-Entry Balance Ledger and Record Store

The Ledger class is the central state manager for the protocol.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes transactions atomically (all moves, record changes and events or none)
    - Maintains account balances and the keyed record store
    - Owns the logical clock (advanced only by the host, never backwards)
    - Publishes events only for committed transactions
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple

from .core import (
    # Types
    Move, Transaction, PendingTransaction, StateKey, DataKey, Event,
    ExecuteResult,
    # Constants
    SYSTEM_WALLET, MAX_LEDGER_SEQUENCE,
    # Exceptions
    LedgerError,
)


class Ledger:
    """
    Double-entry balance ledger with a keyed record store and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    functions that access only read-only methods.

    Design Principles:
        - Always validates: every move is checked in order against the running
          balance of its source, and every record change against the stored
          value it was computed from. Any failure rejects the whole transaction.
        - Always logs: every committed transaction is recorded in the audit
          trail, enabling replay() for state reconstruction.

    Thread Safety:
        Not thread-safe. The host serializes all calls against one Ledger.

    Example:
        ledger = Ledger("main")
        tx = build_transaction(ledger, [Move(100, "alice", "bob", "payment_001")])
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_ledger: int = 0,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_ledger: Starting value of the logical clock (default: 0)
            verbose: Enable debug output (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        if not 0 <= initial_ledger <= MAX_LEDGER_SEQUENCE:
            raise ValueError(f"initial_ledger out of range: {initial_ledger}")
        self.name = name
        self.balances: Dict[str, int] = defaultdict(int)
        self.records: Dict[StateKey, Any] = {}
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self.events: List[Event] = []
        self._current_ledger: int = initial_ledger
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        self.last_rejection: Optional[str] = None

        self.balances[SYSTEM_WALLET] = 0

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_ledger(self) -> int:
        """Current value of the logical clock."""
        return self._current_ledger

    @property
    def next_sequence(self) -> int:
        return self._next_sequence

    def get_balance(self, account: str) -> int:
        """Return the balance of an account. Unknown accounts hold 0."""
        return self.balances.get(account, 0)

    def get_record(self, key: StateKey) -> Any:
        """Return the record stored under key, or None if absent."""
        return self.records.get(key)

    def list_accounts(self) -> Set[str]:
        return set(self.balances.keys())

    # ========================================================================
    # INSPECTION
    # ========================================================================

    def records_of(self, kind: DataKey) -> Dict[StateKey, Any]:
        """Return all records with the given tag."""
        return {k: v for k, v in self.records.items() if k.kind == kind}

    def events_of(self, event_type: str) -> List[Event]:
        """Return committed events of one type, in commit order."""
        return [e for e in self.events if e.event_type == event_type]

    def total_supply(self) -> int:
        """
        Amount in circulation: everything issued from the system wallet
        minus everything redeemed back into it.
        """
        return sum(bal for acct, bal in self.balances.items() if acct != SYSTEM_WALLET)

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that balances sum to zero across all accounts.

        Every move debits one account and credits another by the same amount,
        and the system wallet carries the negative of the circulating supply,
        so the sum must always be exactly 0.

        Returns:
            Dictionary with 'valid' (bool), 'net' (int) and 'total_supply' (int)
        """
        net = sum(self.balances.values())
        return {
            'valid': net == 0,
            'net': net,
            'total_supply': self.total_supply(),
        }

    # ========================================================================
    # MUTATION (clock and test setup)
    # ========================================================================

    def advance_to(self, new_ledger: int) -> None:
        """
        Advance the logical clock to new_ledger.

        Raises:
            ValueError: If new_ledger is earlier than the current value or
                        does not fit in 32 bits
        """
        if new_ledger < self._current_ledger:
            raise ValueError(
                f"Cannot move clock backwards: {new_ledger} < {self._current_ledger}"
            )
        if new_ledger > MAX_LEDGER_SEQUENCE:
            raise ValueError(f"Ledger sequence {new_ledger} exceeds {MAX_LEDGER_SEQUENCE}")
        self._current_ledger = new_ledger

    def advance(self, ticks: int) -> None:
        """Advance the logical clock by a number of ticks."""
        if ticks < 0:
            raise ValueError(f"ticks must be non-negative, got {ticks}")
        self.advance_to(self._current_ledger + ticks)

    def set_balance(self, account: str, amount: int) -> None:
        """
        Set an account balance directly (test mode only).

        The difference is booked against the system wallet so that balances
        still sum to zero. Not recorded in the transaction log, so replay()
        does not reproduce it.

        Raises:
            RuntimeError: If the ledger was not created with test_mode=True
        """
        if not self._test_mode:
            raise RuntimeError("set_balance() is only available in test mode")
        if account == SYSTEM_WALLET:
            raise ValueError("Cannot set the system wallet balance directly")
        delta = amount - self.balances[account]
        self.balances[account] = amount
        self.balances[SYSTEM_WALLET] -= delta

    # ========================================================================
    # TRANSACTION EXECUTION
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        return f"{self.name}:{sequence}:{self._current_ledger}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a pending transaction atomically.

        Execution is idempotent: a pending transaction with the same intent_id
        will not be applied twice. Validation covers:
        - Ledger requirements (the transaction must not be from the future)
        - Record concurrency (each change's old_value must match the store)
        - Balances (no account other than the system wallet may go negative
          at any step of the ordered moves)

        On rejection nothing is written and last_rejection holds the reason.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if the intent was already executed
            ExecuteResult.REJECTED if validation failed
        """
        self.last_rejection = None

        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"⚠ ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        valid, reason = self._validate_pending(pending)
        if not valid:
            self.last_rejection = reason
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            events=pending.events,
            origin=pending.origin,
            ledger=pending.ledger,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            sequence_number=sequence,
            result=pending.result,
        )

        self._execute_moves(tx.moves)
        for sc in tx.state_changes:
            if sc.is_removal:
                self.records.pop(sc.key, None)
            else:
                self.records[sc.key] = sc.new_value
        self.events.extend(tx.events)

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return ExecuteResult.APPLIED

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """Print the boxed transaction rendering with a result line appended."""
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w
        text = f" {icon} {result}"
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{text[:w].ljust(w)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate a pending transaction against current state.

        Returns:
            Tuple of (success: bool, reason: str)
            If success is True, reason is empty string
        """
        if pending.ledger > self._current_ledger:
            return False, f"future ledger: {pending.ledger} > {self._current_ledger}"

        # Record changes are checked against a running overlay so that two
        # changes to the same key within one transaction chain correctly.
        overlay: Dict[StateKey, Any] = {}
        for sc in pending.state_changes:
            current = overlay[sc.key] if sc.key in overlay else self.records.get(sc.key)
            if current != sc.old_value:
                return False, f"stale state for {sc.key!r}: expected {sc.old_value!r}, found {current!r}"
            overlay[sc.key] = sc.new_value

        running: Dict[str, int] = {}
        for move in pending.moves:
            src = running.get(move.source, self.get_balance(move.source)) - move.amount
            if move.source != SYSTEM_WALLET and src < 0:
                return False, (
                    f"insufficient balance: {move.source} cannot pay {move.amount} "
                    f"({move.contract_id})"
                )
            running[move.source] = src
            running[move.dest] = running.get(move.dest, self.get_balance(move.dest)) + move.amount

        return True, ""

    def _execute_moves(self, moves: Tuple[Move, ...]) -> None:
        for move in moves:
            self.balances[move.source] -= move.amount
            self.balances[move.dest] += move.amount

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create an independent copy of this ledger.

        Records are immutable values, so a shallow copy of the store is a
        full copy of state. Cloned state includes balances, records, events,
        the transaction log, the clock and configuration.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_ledger = self._current_ledger
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned.balances = defaultdict(int, self.balances)
        cloned.records = dict(self.records)
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned.events = list(self.events)
        cloned._next_sequence = self._next_sequence
        cloned.last_rejection = self.last_rejection
        return cloned

    def replay(self) -> Ledger:
        """
        Create a new ledger by replaying the transaction log.

        Re-executes every logged transaction in order, advancing the clock to
        each transaction's ledger first. Balances set via set_balance() are
        NOT replayed because they are not part of the transaction log.

        Raises:
            LedgerError: If any transaction is rejected during replay
        """
        new_ledger = Ledger(
            name=f"{self.name}_replayed",
            initial_ledger=0,
            verbose=self.verbose,
            test_mode=self._test_mode,
        )

        for tx in self.transaction_log:
            if tx.ledger > new_ledger.current_ledger:
                new_ledger.advance_to(tx.ledger)

            pending = PendingTransaction(
                moves=tx.moves,
                state_changes=tx.state_changes,
                events=tx.events,
                origin=tx.origin,
                ledger=tx.ledger,
                sequence=tx.sequence_number,
                result=tx.result,
                intent_id=tx.intent_id,
            )
            if new_ledger.execute(pending) != ExecuteResult.APPLIED:
                raise LedgerError(
                    f"Replay failed at tx {tx.exec_id}: {new_ledger.last_rejection}"
                )

        return new_ledger
