"""
conftest.py - Shared pytest fixtures for tokenledger tests

Provides common fixtures used across unit, functional and conformance tests:
- A bare test-mode ledger
- A protocol with an initialized token and funded accounts
- Protocols with the staking pool or the lending pool initialized
- Conservation and staking-total helpers
"""

import pytest

from tokenledger import (
    Ledger, Protocol, DataKey, PROTOCOL_WALLET,
)


ADMIN = "admin"
ALICE = "alice"
BOB = "bob"
CAROL = "carol"
DAVE = "dave"

USERS = (ALICE, BOB, CAROL, DAVE)
ADMIN_FUNDS = 1_000_000
USER_FUNDS = 100_000
REWARD_FUNDS = 1_000_000


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_protocol(initial_ledger: int = 0) -> Protocol:
    """Protocol with the token initialized and every test account funded."""
    protocol = Protocol(Ledger("test", initial_ledger=initial_ledger, verbose=False, test_mode=True),
                        verbose=False)
    protocol.initialize(ADMIN, 7, "Protocol Token", "PTK")
    protocol.mint(ADMIN, ADMIN, ADMIN_FUNDS)
    for user in USERS:
        protocol.mint(ADMIN, user, USER_FUNDS)
    return protocol


def make_staking_protocol(reward_rate: int = 100, min_duration: int = 0) -> Protocol:
    protocol = make_protocol()
    protocol.initialize_staking(ADMIN, "PTK", "PTK", reward_rate, min_duration)
    protocol.mint(ADMIN, PROTOCOL_WALLET, REWARD_FUNDS)
    return protocol


def make_lending_protocol(
    supply_rate: int = 500,
    borrow_rate: int = 1_000,
    collateral_factor: int = 7_500,
    reserve_factor: int = 1_000,
) -> Protocol:
    protocol = make_protocol()
    protocol.initialize_lending_pool(ADMIN, supply_rate, borrow_rate, collateral_factor, reserve_factor)
    return protocol


def make_full_protocol() -> Protocol:
    """Token, staking pool and lending pool on one ledger."""
    protocol = make_staking_protocol(reward_rate=1)
    protocol.initialize_lending_pool(ADMIN, 500, 1_000, 7_500, 1_000)
    return protocol


def verify_conservation(ledger: Ledger) -> None:
    """Assert that balances still sum to zero across all accounts."""
    check = ledger.verify_double_entry()
    assert check['valid'], f"double entry broken: net={check['net']}"


def total_of_stakes(ledger: Ledger) -> int:
    return sum(stake.amount for stake in ledger.records_of(DataKey.STAKE_INFO).values())


def ledger_state(ledger: Ledger):
    """Comparable snapshot of balances, records and events."""
    balances = {acct: bal for acct, bal in ledger.balances.items() if bal != 0}
    return balances, dict(ledger.records), list(ledger.events)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    return Ledger("test", verbose=False, test_mode=True)


@pytest.fixture
def protocol():
    return make_protocol()


@pytest.fixture
def staking_protocol():
    return make_staking_protocol()


@pytest.fixture
def lending_protocol():
    return make_lending_protocol()
