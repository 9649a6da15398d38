"""
StakeVault core.

- Rewards: integer linear accrual at a whole-percent annual rate
- Records: pool configuration singleton and reusable per-user stake slots
- Custody: the pool's intrinsic authority over its custody account
- Token ledger: balances and authorized transfers
- Staking ledger: initialize/update pool, stake, claim rewards, unstake
"""

from .account_store import AccountStore, JsonAccountStore, stake_record_key
from .custody import CustodyCredential, derive_custody_account
from .exceptions import (
    AlreadyStakedError,
    InvalidAmountError,
    InvalidPoolParametersError,
    LockPeriodNotOverError,
    NoActiveStakeError,
    NoRewardsAvailableError,
    PoolAlreadyInitializedError,
    PoolNotInitializedError,
    RewardOverflowError,
    StakingEndedError,
    StakingError,
    StakingNotStartedError,
    StorageError,
    TokenTransferError,
    TransferFailedError,
    UnauthorizedError,
    ValidationError,
)
from .records import PoolConfig, StakeRecord
from .rewards import SECONDS_PER_YEAR, calculate_rewards
from .staking_ledger import StakingLedger
from .token_ledger import TokenLedger

__all__ = [
    # Ledger
    "StakingLedger",
    "PoolConfig",
    "StakeRecord",
    "calculate_rewards",
    "SECONDS_PER_YEAR",
    # Collaborators
    "TokenLedger",
    "AccountStore",
    "JsonAccountStore",
    "stake_record_key",
    "CustodyCredential",
    "derive_custody_account",
    # Errors
    "StakingError",
    "ValidationError",
    "InvalidAmountError",
    "InvalidPoolParametersError",
    "RewardOverflowError",
    "PoolAlreadyInitializedError",
    "PoolNotInitializedError",
    "UnauthorizedError",
    "StakingNotStartedError",
    "StakingEndedError",
    "AlreadyStakedError",
    "NoActiveStakeError",
    "NoRewardsAvailableError",
    "LockPeriodNotOverError",
    "TokenTransferError",
    "TransferFailedError",
    "StorageError",
]
