"""
test_access.py - Unit tests for access.py

Tests:
- Admin and self-authorization checks
- Freeze and unfreeze
"""

import pytest

from tokenledger import AuthorizationError, NotInitialized, AccountFrozen, StateKey, DataKey
from tokenledger.access import (
    require_auth, require_admin, is_frozen, ensure_not_frozen, frozen_change,
    compute_freeze_account,
)
from tests.fake_view import FakeView
from tests.conftest import ADMIN, ALICE, BOB


class TestAuthorization:

    def test_require_auth(self):
        require_auth(ALICE, ALICE)
        with pytest.raises(AuthorizationError):
            require_auth(BOB, ALICE)

    def test_require_admin_without_admin(self):
        with pytest.raises(NotInitialized):
            require_admin(FakeView(), ADMIN)

    def test_require_admin(self):
        view = FakeView(records={StateKey(DataKey.ADMIN): ADMIN})
        assert require_admin(view, ADMIN) == ADMIN
        with pytest.raises(AuthorizationError):
            require_admin(view, ALICE)


class TestFrozen:

    def test_absent_record_is_not_frozen(self):
        assert not is_frozen(FakeView(), ALICE)
        ensure_not_frozen(FakeView(), ALICE)

    def test_frozen_record(self):
        view = FakeView(records={StateKey(DataKey.FROZEN, ALICE): True})
        assert is_frozen(view, ALICE)
        with pytest.raises(AccountFrozen):
            ensure_not_frozen(view, ALICE)

    def test_frozen_change_noop(self):
        assert frozen_change(FakeView(), ALICE, False) is None

    def test_unfreeze_removes_record(self):
        key = StateKey(DataKey.FROZEN, ALICE)
        change = frozen_change(FakeView(records={key: True}), ALICE, False)
        assert change.is_removal

    def test_freeze_requires_admin(self):
        view = FakeView(records={StateKey(DataKey.ADMIN): ADMIN})
        with pytest.raises(AuthorizationError):
            compute_freeze_account(view, ALICE, BOB)

    def test_freeze_and_unfreeze(self, protocol):
        protocol.freeze_account(ADMIN, ALICE)
        assert protocol.is_frozen(ALICE)
        protocol.unfreeze_account(ADMIN, ALICE)
        assert not protocol.is_frozen(ALICE)
        assert [e.event_type for e in protocol.ledger.events[-2:]] == ["freeze_account", "unfreeze_account"]
        assert protocol.ledger.events[-1].subject == ALICE

    def test_freeze_twice_only_emits(self, protocol):
        protocol.freeze_account(ADMIN, ALICE)
        protocol.freeze_account(ADMIN, ALICE)
        assert protocol.is_frozen(ALICE)
        assert len(protocol.ledger.events_of("freeze_account")) == 2
