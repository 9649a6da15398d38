"""
Linear time-proportional reward accrual.

Rewards are computed with integer arithmetic only and always truncated, so
rounding can never pay out more than the pool owes.
"""

from __future__ import annotations

from .exceptions import RewardOverflowError, ValidationError

SECONDS_PER_YEAR = 365 * 24 * 60 * 60
PERCENT_DENOMINATOR = 100
U64_MAX = 2**64 - 1


def calculate_rewards(principal: int, annual_rate: int, elapsed_seconds: int) -> int:
    """
    Reward accrued by ``principal`` at ``annual_rate`` percent over ``elapsed_seconds``.

    Computes ``floor(principal * annual_rate * elapsed / SECONDS_PER_YEAR / 100)``.

    Args:
        principal: Amount staked (unsigned 64-bit)
        annual_rate: Whole percentage points per year (10 == 10%)
        elapsed_seconds: Seconds since the stake opened

    Returns:
        Total reward accrued so far; 0 when no time has elapsed

    Raises:
        ValidationError: If principal or rate is negative
        RewardOverflowError: If the reward does not fit in 64 bits
    """
    if principal < 0:
        raise ValidationError("Principal cannot be negative", {"principal": principal})
    if annual_rate < 0:
        raise ValidationError("Annual rate cannot be negative", {"annual_rate": annual_rate})
    if elapsed_seconds <= 0:
        return 0

    reward = principal * annual_rate * elapsed_seconds // SECONDS_PER_YEAR // PERCENT_DENOMINATOR
    if reward > U64_MAX:
        raise RewardOverflowError(
            "Accrued reward exceeds 64-bit range",
            {"principal": principal, "annual_rate": annual_rate, "elapsed_seconds": elapsed_seconds},
        )
    return reward
