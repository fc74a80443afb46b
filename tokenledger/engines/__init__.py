"""
Engines module - the protocol's three economic state machines.

- Vesting: linear unlock-with-cliff grants
- Staking: time-proportional rewards on staked balances
- Lending: supply, borrow, interest accrual and liquidation

The engines are independent: none calls another's operations. They share
only the balance ledger and the access registry.
"""

from . import lending, staking, vesting

# Vesting
from .vesting import (
    VestingSchedule,
    calculate_vested,
    calculate_claimable,
)

# Staking
from .staking import (
    PoolInfo,
    StakeInfo,
    calculate_reward_index,
    calculate_pending_reward,
)

# Lending
from .lending import (
    LendingPool,
    LiquidationParams,
    UserSupply,
    UserBorrow,
    PositionSummary,
    RiskMetrics,
    accrue_pool,
    settle_supply,
    settle_borrow,
    calculate_position_health,
)

__all__ = [
    'lending', 'staking', 'vesting',
    'VestingSchedule', 'calculate_vested', 'calculate_claimable',
    'PoolInfo', 'StakeInfo', 'calculate_reward_index', 'calculate_pending_reward',
    'LendingPool', 'LiquidationParams', 'UserSupply', 'UserBorrow',
    'PositionSummary', 'RiskMetrics',
    'accrue_pool', 'settle_supply', 'settle_borrow', 'calculate_position_health',
]
