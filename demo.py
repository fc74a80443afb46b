#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: The Token Protocol Step by Step

A guided walk through the protocol. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation  - The token, the system wallet, conservation
  4-5:  Vesting     - Grants, cliffs, frozen beneficiaries, claiming
  6-7:  Staking     - Rewards over logical time, rate changes
  8-10: Lending     - Supply, borrow against collateral, interest, liquidation
  11:   Audit       - Replaying the transaction log

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from tokenledger import (
    Protocol, Ledger, SYSTEM_WALLET, PROTOCOL_WALLET, LEDGERS_PER_YEAR,
    LedgerError,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    admin_funds: int = 10_000_000
    user_funds: int = 100_000
    reward_funds: int = 1_000_000

    # Vesting
    grant: int = 12_000
    vesting_start: int = 100
    vesting_cliff: int = 200
    vesting_end: int = 1_300

    # Staking (reward_rate is basis points of the stake per tick)
    reward_rate: int = 2
    stake_amount: int = 50_000

    # Lending (annual rates and factors in basis points)
    supply_rate: int = 500
    borrow_rate: int = 1_000
    collateral_factor: int = 7_500
    reserve_factor: int = 1_000
    supplied: int = 20_000
    borrowed: int = 7_500
    collateral: int = 10_000


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_balances(protocol: Protocol, *accounts: str):
    for account in accounts:
        print(f"  {account:<10} {protocol.balance(account):>14,}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_initialize() -> Protocol:
    """Create the ledger and install the token."""
    step_header(1, "The Token",
        "Understand that every balance is issued from the system wallet.")

    print(">>> protocol = Protocol(Ledger('tutorial', verbose=False), verbose=False)")
    protocol = Protocol(Ledger("tutorial", verbose=False), verbose=False)
    print(">>> protocol.initialize('admin', 7, 'Protocol Token', 'PTK')")
    protocol.initialize("admin", 7, "Protocol Token", "PTK")

    section_header("Metadata")
    print(f"Name:     {protocol.name()}")
    print(f"Symbol:   {protocol.symbol()}")
    print(f"Decimals: {protocol.decimals()}")
    print(f"Admin:    {protocol.admin()}")
    return protocol


def step_02_mint(protocol: Protocol) -> Protocol:
    step_header(2, "Minting",
        "See that minting debits the system wallet, so balances sum to zero.")

    protocol.mint("admin", "admin", CONFIG.admin_funds)
    for user in ("alice", "bob", "carol"):
        protocol.mint("admin", user, CONFIG.user_funds)
    protocol.mint("admin", PROTOCOL_WALLET, CONFIG.reward_funds)

    show_balances(protocol, "admin", "alice", "bob", "carol", PROTOCOL_WALLET, SYSTEM_WALLET)
    return protocol


def step_03_conservation(protocol: Protocol) -> Protocol:
    step_header(3, "Conservation",
        "Check the double-entry invariant: the sum of all balances is zero.")

    protocol.transfer("alice", "bob", 1_000)
    check = protocol.ledger.verify_double_entry()
    print(f"Sum of balances: {check['net']}")
    print(f"Total supply:    {check['total_supply']:,}")
    print(f"Valid:           {check['valid']}")

    section_header("A rejected transfer")
    try:
        protocol.transfer("carol", "alice", CONFIG.user_funds * 10)
    except LedgerError as e:
        print(f"Refused: {e}")
    return protocol


# ============================================================================
# PHASE 2: VESTING (Steps 4-5)
# ============================================================================

def step_04_grant(protocol: Protocol) -> Protocol:
    step_header(4, "A Vesting Grant",
        "Grant tokens that unlock linearly after a cliff.")

    protocol.create_vesting("admin", "carol", CONFIG.grant,
                            CONFIG.vesting_start, CONFIG.vesting_cliff, CONFIG.vesting_end)
    print(f"Schedule: {protocol.get_vesting_info('carol')}")
    print(f"Carol frozen: {protocol.is_frozen('carol')}")

    try:
        protocol.transfer("carol", "alice", 1)
    except LedgerError as e:
        print(f"Carol cannot move funds while vesting: {e}")
    return protocol


def step_05_claim(protocol: Protocol) -> Protocol:
    step_header(5, "Claiming",
        "Watch the claimable amount grow with the logical clock.")

    for ledger in (150, 200, 700, CONFIG.vesting_end):
        protocol.ledger.advance_to(ledger)
        print(f"  ledger {ledger:>5}: claimable {protocol.get_claimable_vesting('carol'):>6,}")

    claimed = protocol.claim_vesting("carol")
    print(f"\nClaimed {claimed:,}. Carol frozen: {protocol.is_frozen('carol')}")
    return protocol


# ============================================================================
# PHASE 3: STAKING (Steps 6-7)
# ============================================================================

def step_06_stake(protocol: Protocol) -> Protocol:
    step_header(6, "Staking",
        "Stake tokens and earn rewards proportional to amount and time.")

    protocol.initialize_staking("admin", "PTK", "PTK", CONFIG.reward_rate, 0)
    protocol.stake("alice", CONFIG.stake_amount)
    protocol.ledger.advance(100)
    print(f"Pending after 100 ticks: {protocol.get_pending_rewards('alice'):,}")
    print(f"Claimed: {protocol.claim_rewards('alice'):,}")
    return protocol


def step_07_rate_change(protocol: Protocol) -> Protocol:
    step_header(7, "Changing the Reward Rate",
        "A new rate applies from now on; past ticks keep the old rate.")

    protocol.ledger.advance(100)
    protocol.update_reward_rate("admin", CONFIG.reward_rate * 2)
    protocol.ledger.advance(100)
    print(f"Pending: {protocol.get_pending_rewards('alice'):,}")
    print(f"Unstaked: {protocol.unstake('alice', CONFIG.stake_amount):,}")
    print(f"Pool: {protocol.get_pool_info()}")
    return protocol


# ============================================================================
# PHASE 4: LENDING (Steps 8-10)
# ============================================================================

def step_08_supply_borrow(protocol: Protocol) -> Protocol:
    step_header(8, "Supply and Borrow",
        "Fund the pool and borrow against collateral.")

    protocol.initialize_lending_pool("admin", CONFIG.supply_rate, CONFIG.borrow_rate,
                                     CONFIG.collateral_factor, CONFIG.reserve_factor)
    protocol.supply("alice", CONFIG.supplied)
    protocol.borrow("bob", CONFIG.borrowed, CONFIG.collateral)
    print(f"Pool:          {protocol.get_lending_pool_info()}")
    print(f"Bob's health:  {protocol.get_user_health_factor('bob')}")
    print(f"Bob can still borrow: {protocol.get_max_borrowable_amount('bob', CONFIG.collateral):,}")
    return protocol


def step_09_interest(protocol: Protocol) -> Protocol:
    step_header(9, "Interest",
        "A year of ticks passes; debt grows and health falls.")

    protocol.ledger.advance(LEDGERS_PER_YEAR)
    print(f"Bob's pending interest: {protocol.get_pending_borrow_interest('bob'):,}")
    print(f"Bob's health:           {protocol.get_user_health_factor('bob')}")
    print(f"Liquidatable:           {protocol.find_liquidatable_positions('admin', ['alice', 'bob'])}")
    return protocol


def step_10_liquidation(protocol: Protocol) -> Protocol:
    step_header(10, "Liquidation",
        "A liquidator repays part of the debt and takes collateral plus a penalty.")

    result = protocol.batch_liquidate("admin", [("bob", CONFIG.borrowed), ("alice", 1)])
    print(f"Liquidated: {result.liquidated}")
    print(f"Skipped:    {result.skipped}")
    print(f"Bob now:    {protocol.get_user_borrow_info('bob')}")
    print(f"Bob health: {protocol.get_user_health_factor('bob')}")
    return protocol


# ============================================================================
# PHASE 5: AUDIT (Step 11)
# ============================================================================

def step_11_replay(protocol: Protocol) -> Protocol:
    step_header(11, "Replay",
        "Rebuild the whole session from the transaction log.")

    replayed = protocol.ledger.replay()
    same = (dict(replayed.balances) == dict(protocol.ledger.balances)
            and replayed.records == protocol.ledger.records)
    print(f"Transactions:    {len(protocol.ledger.transaction_log)}")
    print(f"Events:          {len(protocol.ledger.events)}")
    print(f"Replay matches:  {same}")
    print(f"Double entry ok: {protocol.ledger.verify_double_entry()['valid']}")
    return protocol


STEPS = (
    step_02_mint, step_03_conservation,
    step_04_grant, step_05_claim,
    step_06_stake, step_07_rate_change,
    step_08_supply_borrow, step_09_interest, step_10_liquidation,
    step_11_replay,
)


def main() -> Protocol:
    """Run the complete tutorial."""
    print("=" * 70)
    print("       TOKEN PROTOCOL - INTERACTIVE TUTORIAL")
    print("=" * 70)
    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    wait_for_enter()

    protocol = step_01_initialize()
    for step in STEPS:
        wait_for_enter()
        protocol = step(protocol)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    return protocol


if __name__ == "__main__":
    main()
