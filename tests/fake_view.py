"""
fake_view.py - Test Helper for LedgerView

Provides a minimal, immutable LedgerView implementation for testing compute
functions without a full Ledger instance.
"""

from __future__ import annotations
from typing import Any, Dict, Optional, Set

from tokenledger.core import StateKey


class FakeView:
    """
    Minimal LedgerView implementation for testing compute functions.

    Example:
        view = FakeView(
            balances={'alice': 1000},
            records={stake_key('alice'): StakeInfo(100, 0, 0)},
            ledger=50,
        )
        view.get_balance('alice')
        # Returns: 1000
    """

    def __init__(
        self,
        balances: Optional[Dict[str, int]] = None,
        records: Optional[Dict[StateKey, Any]] = None,
        ledger: int = 0,
        sequence: int = 0,
    ):
        self._balances = dict(balances or {})
        self._records = dict(records or {})
        self._ledger = ledger
        self._sequence = sequence

    @property
    def current_ledger(self) -> int:
        return self._ledger

    @property
    def next_sequence(self) -> int:
        return self._sequence

    def get_balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def get_record(self, key: StateKey) -> Any:
        return self._records.get(key)

    def list_accounts(self) -> Set[str]:
        return set(self._balances.keys())
