"""
tokenledger - Vesting, Staking and Lending on a Shared Balance Ledger

The accounting core of a token protocol: linear vesting grants, a staking
pool with time-proportional rewards, and a collateralized lending market,
all executed deterministically against a logical clock.

Usage:
    from tokenledger import Protocol

    protocol = Protocol(verbose=False)
    protocol.initialize("admin", 7, "Token", "TKN")
    protocol.mint("admin", "alice", 10_000)
    protocol.mint("admin", "bob", 10_000)

    protocol.initialize_lending_pool("admin", 500, 1_000, 7_500, 1_000)
    protocol.supply("alice", 1_000)
    protocol.borrow("bob", 600, 900)

    protocol.ledger.advance(100)
    protocol.get_user_health_factor("bob")

Lower-level usage (pure compute functions against a Ledger):
    from tokenledger import Ledger, Move, build_transaction, SYSTEM_WALLET

    ledger = Ledger("main")
    tx = build_transaction(ledger, [Move(1_000, SYSTEM_WALLET, "alice", "funding")])
    ledger.execute(tx)
"""

# Core types
from .core import (
    LedgerView,
    Move,
    StateChange,
    Event,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    ExecuteResult,
    DataKey,
    StateKey,
    build_transaction,
    empty_pending_transaction,
    optional_move,
    record_change,
    # Constants
    SYSTEM_WALLET,
    PROTOCOL_WALLET,
    BASIS_POINTS,
    LEDGERS_PER_YEAR,
    HEALTH_FACTOR_MAX,
    LIQUIDATION_HEALTH_THRESHOLD,
    MAX_BATCH_LIQUIDATIONS,
    REWARD_PRECISION,
    # Exceptions
    LedgerError,
    AuthorizationError,
    ValidationError,
    StatePreconditionError,
    NotInitialized,
    AlreadyInitialized,
    AlreadyExists,
    RecordNotFound,
    StakeLocked,
    EconomicError,
    InsufficientFunds,
    InsufficientAllowance,
    InsufficientLiquidity,
    InsufficientCollateral,
    UnsafePosition,
    PositionHealthy,
    InsufficientReserves,
    NothingToClaim,
    AccountFrozen,
    TransactionRejected,
)

# Ledger
from .ledger import Ledger

# Arithmetic
from .rates import RateModel, DEFAULT_RATE_MODEL

# Token and access
from .token import TokenMetadata, AllowanceValue

# Engines
from .engines import (
    VestingSchedule,
    PoolInfo,
    StakeInfo,
    LendingPool,
    LiquidationParams,
    UserSupply,
    UserBorrow,
    PositionSummary,
    RiskMetrics,
)

# Facade
from .protocol import Protocol, BatchLiquidationResult

__all__ = [
    # Core
    'LedgerView', 'Move', 'StateChange', 'Event', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'ExecuteResult', 'DataKey', 'StateKey',
    'build_transaction', 'empty_pending_transaction', 'optional_move', 'record_change',
    'SYSTEM_WALLET', 'PROTOCOL_WALLET', 'BASIS_POINTS', 'LEDGERS_PER_YEAR',
    'HEALTH_FACTOR_MAX', 'LIQUIDATION_HEALTH_THRESHOLD', 'MAX_BATCH_LIQUIDATIONS',
    'REWARD_PRECISION',
    # Exceptions
    'LedgerError', 'AuthorizationError', 'ValidationError', 'StatePreconditionError',
    'NotInitialized', 'AlreadyInitialized', 'AlreadyExists', 'RecordNotFound', 'StakeLocked',
    'EconomicError', 'InsufficientFunds', 'InsufficientAllowance', 'InsufficientLiquidity',
    'InsufficientCollateral', 'UnsafePosition', 'PositionHealthy', 'InsufficientReserves',
    'NothingToClaim', 'AccountFrozen', 'TransactionRejected',
    # Ledger
    'Ledger',
    # Arithmetic
    'RateModel', 'DEFAULT_RATE_MODEL',
    # Token
    'TokenMetadata', 'AllowanceValue',
    # Engines
    'VestingSchedule', 'PoolInfo', 'StakeInfo', 'LendingPool', 'LiquidationParams',
    'UserSupply', 'UserBorrow', 'PositionSummary', 'RiskMetrics',
    # Facade
    'Protocol', 'BatchLiquidationResult',
]

__version__ = '1.0.0'
