"""
protocol.py - Protocol Facade

Protocol binds a Ledger to every externally callable operation. Each
mutating method computes a PendingTransaction with the matching engine
function, executes it atomically, and returns the operation's result.
Query methods read the ledger directly.

Every mutating method takes the authenticated caller first. For
self-authorized operations the caller is the account acted on; for
admin operations the caller must be the relevant admin.

A failed check raises before anything is executed. A transaction the
ledger rejects raises TransactionRejected. Either way, no state changes.

batch_liquidate is the one operation that commits more than once: each
unhealthy target is liquidated in its own transaction, followed by one
summary transaction.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .core import (
    PendingTransaction, ExecuteResult, PROTOCOL_WALLET,
    LedgerError, TransactionRejected,
)
from .ledger import Ledger
from .rates import RateModel, DEFAULT_RATE_MODEL
from . import access, token
from .engines import lending, staking, vesting
from .engines.vesting import VestingSchedule
from .engines.staking import PoolInfo, StakeInfo
from .engines.lending import (
    LendingPool, LiquidationParams, UserSupply, UserBorrow, PositionSummary, RiskMetrics,
)


@dataclass(frozen=True, slots=True)
class BatchLiquidationResult:
    """
    Outcome of batch_liquidate.

    Attributes:
        liquidated: (borrower, amount repaid) for each liquidated target
        skipped: Borrowers whose positions were healthy
        failed: (borrower, reason) for each target whose liquidation failed
        total_repaid: Sum of amounts repaid
    """
    liquidated: Tuple[Tuple[str, int], ...]
    skipped: Tuple[str, ...]
    failed: Tuple[Tuple[str, str], ...]
    total_repaid: int


class Protocol:
    """
    Vesting, staking and lending on one shared balance ledger.

    Example:
        protocol = Protocol(verbose=False)
        protocol.initialize("admin", 7, "Token", "TKN")
        protocol.mint("admin", "alice", 1_000)
        protocol.initialize_lending_pool("admin", 500, 1_000, 7_500, 1_000)
        protocol.supply("alice", 1_000)
    """

    def __init__(
        self,
        ledger: Optional[Ledger] = None,
        rate_model: RateModel = DEFAULT_RATE_MODEL,
        verbose: bool = True,
    ):
        """
        Args:
            ledger: Ledger to operate on (default: a new Ledger named "protocol")
            rate_model: Jump-rate curve used by update_dynamic_rates
            verbose: Print batch progress (default: True)
        """
        self.ledger = ledger if ledger is not None else Ledger("protocol", verbose=verbose)
        self.rate_model = rate_model
        self.verbose = verbose

    @property
    def current_ledger(self) -> int:
        return self.ledger.current_ledger

    def _commit(self, pending: PendingTransaction) -> Optional[int]:
        if self.ledger.execute(pending) == ExecuteResult.REJECTED:
            raise TransactionRejected(self.ledger.last_rejection)
        return pending.result

    # ========================================================================
    # TOKEN
    # ========================================================================

    def initialize(self, admin: str, decimals: int, name: str, symbol: str) -> None:
        self._commit(token.compute_initialize_token(self.ledger, admin, decimals, name, symbol))

    def mint(self, caller: str, to: str, amount: int) -> None:
        self._commit(token.compute_mint(self.ledger, caller, to, amount))

    def set_admin(self, caller: str, new_admin: str) -> None:
        self._commit(token.compute_set_admin(self.ledger, caller, new_admin))

    def approve(self, caller: str, spender: str, amount: int, expiration_ledger: int) -> None:
        self._commit(token.compute_approve(self.ledger, caller, spender, amount, expiration_ledger))

    def allowance(self, owner: str, spender: str) -> int:
        return token.get_allowance(self.ledger, owner, spender)

    def balance(self, account: str) -> int:
        return self.ledger.get_balance(account)

    def transfer(self, caller: str, to: str, amount: int) -> None:
        self._commit(token.compute_transfer(self.ledger, caller, to, amount))

    def transfer_from(self, caller: str, owner: str, to: str, amount: int) -> None:
        self._commit(token.compute_transfer_from(self.ledger, caller, owner, to, amount))

    def burn(self, caller: str, amount: int) -> None:
        self._commit(token.compute_burn(self.ledger, caller, amount))

    def burn_from(self, caller: str, owner: str, amount: int) -> None:
        self._commit(token.compute_burn_from(self.ledger, caller, owner, amount))

    def decimals(self) -> int:
        return token.get_metadata(self.ledger).decimals

    def name(self) -> str:
        return token.get_metadata(self.ledger).name

    def symbol(self) -> str:
        return token.get_metadata(self.ledger).symbol

    # ========================================================================
    # ACCESS
    # ========================================================================

    def admin(self) -> Optional[str]:
        return access.get_admin(self.ledger)

    def freeze_account(self, caller: str, account: str) -> None:
        self._commit(access.compute_freeze_account(self.ledger, caller, account))

    def unfreeze_account(self, caller: str, account: str) -> None:
        self._commit(access.compute_unfreeze_account(self.ledger, caller, account))

    def is_frozen(self, account: str) -> bool:
        return access.is_frozen(self.ledger, account)

    # ========================================================================
    # VESTING
    # ========================================================================

    def create_vesting(
        self, caller: str, beneficiary: str, total_amount: int,
        start_ledger: int, cliff_ledger: int, end_ledger: int,
    ) -> None:
        self._commit(vesting.compute_create_vesting(
            self.ledger, caller, beneficiary, total_amount, start_ledger, cliff_ledger, end_ledger,
        ))

    def claim_vesting(self, caller: str) -> int:
        return self._commit(vesting.compute_claim_vesting(self.ledger, caller))

    def revoke_vesting(self, caller: str, beneficiary: str) -> int:
        return self._commit(vesting.compute_revoke_vesting(self.ledger, caller, beneficiary))

    def get_vesting_info(self, beneficiary: str) -> Optional[VestingSchedule]:
        return vesting.get_vesting_info(self.ledger, beneficiary)

    def get_claimable_vesting(self, beneficiary: str) -> int:
        return vesting.get_claimable_vesting(self.ledger, beneficiary)

    # ========================================================================
    # STAKING
    # ========================================================================

    def initialize_staking(
        self, caller: str, staked_asset: str, reward_asset: str,
        reward_rate: int, min_stake_duration: int,
    ) -> None:
        self._commit(staking.compute_initialize_staking(
            self.ledger, caller, staked_asset, reward_asset, reward_rate, min_stake_duration,
        ))

    def update_reward_rate(self, caller: str, new_rate: int) -> None:
        self._commit(staking.compute_update_reward_rate(self.ledger, caller, new_rate))

    def update_min_stake_duration(self, caller: str, duration: int) -> None:
        self._commit(staking.compute_update_min_stake_duration(self.ledger, caller, duration))

    def stake(self, caller: str, amount: int) -> None:
        self._commit(staking.compute_stake(self.ledger, caller, amount))

    def unstake(self, caller: str, amount: int) -> int:
        return self._commit(staking.compute_unstake(self.ledger, caller, amount))

    def claim_rewards(self, caller: str) -> int:
        return self._commit(staking.compute_claim_rewards(self.ledger, caller))

    def emergency_withdraw_rewards(self, caller: str) -> int:
        return self._commit(staking.compute_emergency_withdraw_rewards(self.ledger, caller))

    def get_pending_rewards(self, account: str) -> int:
        return staking.get_pending_rewards(self.ledger, account)

    def get_stake_info(self, account: str) -> StakeInfo:
        return staking.get_stake_info(self.ledger, account)

    def get_pool_info(self) -> PoolInfo:
        return staking.get_pool_info(self.ledger)

    # ========================================================================
    # LENDING - ADMINISTRATION
    # ========================================================================

    def initialize_lending_pool(
        self, caller: str, supply_rate: int, borrow_rate: int,
        collateral_factor: int, reserve_factor: int,
    ) -> None:
        self._commit(lending.compute_initialize_lending_pool(
            self.ledger, caller, supply_rate, borrow_rate, collateral_factor, reserve_factor,
        ))

    def update_lending_rates(self, caller: str, supply_rate: int, borrow_rate: int) -> None:
        self._commit(lending.compute_update_lending_rates(self.ledger, caller, supply_rate, borrow_rate))

    def update_liquidation_params(self, caller: str, threshold: int, penalty: int) -> None:
        self._commit(lending.compute_update_liquidation_params(self.ledger, caller, threshold, penalty))

    def update_collateral_factor(self, caller: str, collateral_factor: int) -> None:
        self._commit(lending.compute_update_collateral_factor(self.ledger, caller, collateral_factor))

    def update_dynamic_rates(self, caller: str) -> None:
        self._commit(lending.compute_update_dynamic_rates(self.ledger, caller, self.rate_model))

    def withdraw_reserves(self, caller: str, amount: int) -> int:
        return self._commit(lending.compute_withdraw_reserves(self.ledger, caller, amount))

    def emergency_withdraw_lending_pool(self, caller: str) -> int:
        return self._commit(lending.compute_emergency_withdraw_lending_pool(self.ledger, caller))

    def accrue_lending_interest_manual(self, caller: str = PROTOCOL_WALLET) -> None:
        self._commit(lending.compute_accrue_interest(self.ledger, caller))

    # ========================================================================
    # LENDING - POSITIONS
    # ========================================================================

    def supply(self, caller: str, amount: int) -> None:
        self._commit(lending.compute_supply(self.ledger, caller, amount))

    def withdraw(self, caller: str, amount: int) -> int:
        return self._commit(lending.compute_withdraw(self.ledger, caller, amount))

    def borrow(self, caller: str, amount: int, collateral_amount: int) -> None:
        self._commit(lending.compute_borrow(self.ledger, caller, amount, collateral_amount))

    def repay(self, caller: str, amount: int) -> int:
        return self._commit(lending.compute_repay(self.ledger, caller, amount))

    def add_collateral(self, caller: str, amount: int) -> None:
        self._commit(lending.compute_add_collateral(self.ledger, caller, amount))

    def remove_collateral(self, caller: str, amount: int) -> int:
        return self._commit(lending.compute_remove_collateral(self.ledger, caller, amount))

    def liquidate(self, caller: str, borrower: str, repay_amount: int) -> int:
        return self._commit(lending.compute_liquidation(self.ledger, caller, borrower, repay_amount))

    def batch_liquidate(self, caller: str, targets: Sequence[Tuple[str, int]]) -> BatchLiquidationResult:
        """
        Liquidate up to MAX_BATCH_LIQUIDATIONS (borrower, repay_amount) targets.

        Healthy targets are skipped. Each unhealthy target is liquidated in
        its own committed transaction, and a failure is recorded with its
        reason without undoing earlier targets. A final batch_liquidate event
        carries the total repaid.
        """
        lending.validate_batch_size(targets)
        lending.load_lending_pool(self.ledger)

        liquidated: List[Tuple[str, int]] = []
        skipped: List[str] = []
        failed: List[Tuple[str, str]] = []
        for borrower, repay_amount in targets:
            if not lending.is_liquidatable(self.ledger, borrower):
                if self.verbose:
                    print(f"[BATCH] skipped {borrower}: healthy")
                skipped.append(borrower)
                continue
            try:
                repaid = self.liquidate(caller, borrower, repay_amount)
            except LedgerError as e:
                if self.verbose:
                    print(f"[BATCH] failed {borrower}: {e}")
                failed.append((borrower, str(e)))
                continue
            liquidated.append((borrower, repaid))

        total_repaid = sum(amount for _, amount in liquidated)
        self._commit(lending.compute_batch_liquidation_summary(self.ledger, caller, total_repaid))
        return BatchLiquidationResult(
            liquidated=tuple(liquidated),
            skipped=tuple(skipped),
            failed=tuple(failed),
            total_repaid=total_repaid,
        )

    # ========================================================================
    # LENDING - QUERIES
    # ========================================================================

    def get_lending_pool_info(self) -> LendingPool:
        return lending.get_lending_pool_info(self.ledger)

    def get_liquidation_params(self) -> LiquidationParams:
        return lending.get_liquidation_params(self.ledger)

    def get_user_supply_info(self, account: str) -> Optional[UserSupply]:
        return lending.get_user_supply_info(self.ledger, account)

    def get_user_borrow_info(self, account: str) -> Optional[UserBorrow]:
        return lending.get_user_borrow_info(self.ledger, account)

    def get_user_health_factor(self, account: str) -> int:
        return lending.get_user_health_factor(self.ledger, account)

    def get_pending_supply_interest(self, account: str) -> int:
        return lending.get_pending_supply_interest(self.ledger, account)

    def get_pending_borrow_interest(self, account: str) -> int:
        return lending.get_pending_borrow_interest(self.ledger, account)

    def get_user_position_summary(self, account: str) -> PositionSummary:
        return lending.get_user_position_summary(self.ledger, account)

    def get_protocol_risk_metrics(self, caller: str) -> RiskMetrics:
        return lending.get_protocol_risk_metrics(self.ledger, caller)

    def find_liquidatable_positions(self, caller: str, accounts: Iterable[str]) -> List[str]:
        return lending.find_liquidatable_positions(self.ledger, caller, accounts)

    def get_max_borrowable_amount(self, account: str, collateral_amount: int) -> int:
        return lending.get_max_borrowable_amount(self.ledger, account, collateral_amount)

    def get_available_liquidity(self) -> int:
        return lending.get_available_liquidity(self.ledger)
