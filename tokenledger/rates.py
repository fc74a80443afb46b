"""
rates.py - Interest, Rate, Reward and Health Arithmetic

Pure integer arithmetic shared by the staking and lending engines.

All amounts are integers and every division truncates toward zero, so the
same inputs produce the same outputs on every host. Rates and factors are in
basis points (1/10000).

Interest model:
    interest = principal * rate_bp * elapsed / (10000 * LEDGERS_PER_YEAR)
    Simple, non-compounding within one step. Pool totals compound only
    because each accrual adds interest to the principal it is computed on.

Jump-rate model:
    utilization <= optimal:
        borrow = base + utilization * multiplier / 10000
    utilization > optimal:
        borrow = base + optimal * multiplier / 10000
                      + (utilization - optimal) * jump_multiplier / 10000
    supply = (borrow * utilization / 10000) * (10000 - reserve_factor) / 10000
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import (
    BASIS_POINTS, LEDGERS_PER_YEAR, HEALTH_FACTOR_MAX,
    MAX_LIQUIDATION_SHARE_BP,
)


@dataclass(frozen=True, slots=True)
class RateModel:
    """
    Parameters of the utilization-keyed jump-rate curve.

    Attributes:
        optimal_utilization: Kink of the curve, in basis points
        base_rate: Borrow rate at zero utilization
        multiplier: Slope below the kink
        jump_multiplier: Slope above the kink
    """
    optimal_utilization: int = 8_000
    base_rate: int = 200
    multiplier: int = 500
    jump_multiplier: int = 10_000

    def __post_init__(self):
        for name in ("optimal_utilization", "base_rate", "multiplier", "jump_multiplier"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if self.optimal_utilization > BASIS_POINTS:
            raise ValueError(f"optimal_utilization cannot exceed {BASIS_POINTS}")


DEFAULT_RATE_MODEL = RateModel()


def div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero."""
    if denominator == 0:
        raise ZeroDivisionError("division by zero")
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator < 0) == (denominator < 0) else -quotient


def calculate_interest(principal: int, rate_bp: int, elapsed: int) -> int:
    """Simple interest on principal at rate_bp per year over elapsed ticks."""
    if elapsed <= 0 or principal == 0 or rate_bp == 0:
        return 0
    return div_trunc(principal * rate_bp * elapsed, BASIS_POINTS * LEDGERS_PER_YEAR)


def calculate_utilization(total_borrowed: int, total_supplied: int) -> int:
    """Borrowed funds as basis points of supplied funds; 0 for an empty pool."""
    if total_supplied == 0:
        return 0
    return div_trunc(total_borrowed * BASIS_POINTS, total_supplied)


def calculate_borrow_rate(utilization: int, model: RateModel = DEFAULT_RATE_MODEL) -> int:
    if utilization <= model.optimal_utilization:
        return model.base_rate + div_trunc(utilization * model.multiplier, BASIS_POINTS)
    normal = div_trunc(model.optimal_utilization * model.multiplier, BASIS_POINTS)
    excess = utilization - model.optimal_utilization
    return model.base_rate + normal + div_trunc(excess * model.jump_multiplier, BASIS_POINTS)


def calculate_supply_rate(borrow_rate: int, utilization: int, reserve_factor: int) -> int:
    gross = div_trunc(borrow_rate * utilization, BASIS_POINTS)
    return div_trunc(gross * (BASIS_POINTS - reserve_factor), BASIS_POINTS)


def calculate_reward(amount: int, rate_ticks: int) -> int:
    """
    Staking reward for amount staked over rate_ticks.

    rate_ticks is the sum of reward_rate * elapsed over the period, so for a
    constant rate this is amount * rate * elapsed / 10000.
    """
    if amount <= 0 or rate_ticks <= 0:
        return 0
    return div_trunc(amount * rate_ticks, BASIS_POINTS)


def calculate_health_factor(collateral: int, debt: int, liquidation_threshold: int) -> int:
    """
    Health factor of a borrow position, scaled so that 100 is the boundary.

    collateral * threshold / (debt * 100). Positions without debt report
    HEALTH_FACTOR_MAX.
    """
    if debt <= 0:
        return HEALTH_FACTOR_MAX
    return div_trunc(collateral * liquidation_threshold, debt * 100)


def calculate_required_collateral(debt: int, collateral_factor: int) -> int:
    """
    Collateral needed to back debt at collateral_factor.

    Rounded up, so that collateral >= required exactly when
    collateral * collateral_factor >= debt * 10000.
    """
    if debt <= 0:
        return 0
    return -(-(debt * BASIS_POINTS) // collateral_factor)


def is_adequately_collateralized(collateral: int, debt: int, collateral_factor: int) -> bool:
    return collateral * collateral_factor >= debt * BASIS_POINTS


def calculate_max_liquidation(total_debt: int) -> int:
    """Largest repayment a single liquidation may make."""
    return div_trunc(total_debt * MAX_LIQUIDATION_SHARE_BP, BASIS_POINTS)


def calculate_seizure(repay_amount: int, liquidation_penalty: int) -> int:
    """Collateral handed to a liquidator: the repayment plus the penalty bonus."""
    return repay_amount + div_trunc(repay_amount * liquidation_penalty, BASIS_POINTS)


def calculate_max_borrowable(collateral: int, collateral_factor: int, current_debt: int) -> int:
    capacity = div_trunc(collateral * collateral_factor, BASIS_POINTS)
    return max(0, capacity - current_debt)


def calculate_reserves(total_supplied: int, total_borrowed: int, reserve_factor: int) -> int:
    idle = max(0, total_supplied - total_borrowed)
    return div_trunc(idle * reserve_factor, BASIS_POINTS)


def calculate_risk_score(utilization: int) -> int:
    if utilization > 9_000:
        return 100
    if utilization > 8_000:
        return 75
    if utilization > 6_000:
        return 50
    return 25
