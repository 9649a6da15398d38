"""
Staking-specific exception hierarchy for StakeVault.

Every ledger failure is a typed exception carrying a stable ``code`` so
client tooling can present the precise reason for a rejected operation.
None of these errors are transient; callers must correct the condition
(wait for the staking window, wait for the lock, ...) and reissue.
"""

from __future__ import annotations

from typing import Any, Optional, Dict


class StakingError(Exception):
    """Base exception for all staking ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried as-is
    """

    code = "StakingError"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


# ==================== Validation Errors ====================


class ValidationError(StakingError):
    """Raised when operation arguments fail validation rules."""

    code = "ValidationError"


class InvalidAmountError(ValidationError):
    """Raised when a stake amount is zero, negative or exceeds 64 bits."""

    code = "InvalidAmount"


class InvalidPoolParametersError(ValidationError):
    """Raised when pool parameters are inconsistent (e.g. start after end)."""

    code = "InvalidPoolParameters"


class RewardOverflowError(ValidationError):
    """Raised when an accrued reward does not fit in an unsigned 64-bit value."""

    code = "RewardOverflow"


# ==================== Pool Errors ====================


class PoolStateError(StakingError):
    """Raised when the pool singleton is in the wrong state for an operation."""

    code = "PoolState"


class PoolAlreadyInitializedError(PoolStateError):
    code = "PoolAlreadyInitialized"


class PoolNotInitializedError(PoolStateError):
    code = "PoolNotInitialized"


class UnauthorizedError(StakingError):
    """Raised when a non-owner attempts to reconfigure the pool."""

    code = "Unauthorized"


# ==================== Lifecycle Errors ====================


class StakingWindowError(StakingError):
    """Raised when ``stake`` is called outside the configured window."""

    code = "StakingWindow"


class StakingNotStartedError(StakingWindowError):
    code = "StakingNotStarted"


class StakingEndedError(StakingWindowError):
    code = "StakingEnded"


class AlreadyStakedError(StakingError):
    """Raised when a user with an active stake tries to stake again."""

    code = "AlreadyStaked"


class NoActiveStakeError(StakingError):
    """Raised when claiming or unstaking without an active stake."""

    code = "NoActiveStake"


class NoRewardsAvailableError(StakingError):
    """Raised when no newly accrued reward exists for the stake."""

    code = "NoRewardsAvailable"


class LockPeriodNotOverError(StakingError):
    """Raised when ``unstake`` is called before the lock expires."""

    code = "LockPeriodNotOver"


# ==================== Transfer & Storage Errors ====================


class TokenTransferError(Exception):
    """Raised by the token ledger when it declines a transfer."""

    pass


class TransferFailedError(StakingError):
    """Raised when the token-transfer service declines an operation's transfer.

    The underlying ``TokenTransferError`` message is surfaced verbatim and
    chained as ``__cause__``.
    """

    code = "TransferFailed"


class StorageError(StakingError):
    """Raised when the account store cannot be read or written."""

    code = "StorageError"
