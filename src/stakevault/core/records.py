"""
Persisted entities of the staking ledger: the pool singleton and per-user stake records.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass
class PoolConfig:
    """
    Global staking parameters, created once by ``initialize_pool``.

    ``owner`` is immutable after creation. ``custody_authority_token`` is the
    seed from which the pool's custody credential is rebuilt; it is never
    handed to external callers.
    """

    owner: str
    asset_id: str
    custody_account: str
    start_time: int
    end_time: int
    lock_duration: int
    annual_rate: int
    custody_authority_token: str
    total_staked: int = 0
    initial_funding: int = 0

    def is_open(self, timestamp: int) -> bool:
        return self.start_time <= timestamp <= self.end_time

    def public_view(self) -> "PoolConfig":
        """Copy safe to hand to callers: the custody seed is blanked."""
        return replace(self, custody_authority_token="")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PoolConfig":
        return cls(
            owner=data["owner"],
            asset_id=data.get("asset_id", ""),
            custody_account=data["custody_account"],
            start_time=int(data["start_time"]),
            end_time=int(data["end_time"]),
            lock_duration=int(data["lock_duration"]),
            annual_rate=int(data["annual_rate"]),
            custody_authority_token=data["custody_authority_token"],
            total_staked=int(data.get("total_staked", 0)),
            initial_funding=int(data.get("initial_funding", 0)),
        )

    def __repr__(self) -> str:
        return (
            f"PoolConfig(owner='{self.owner}', window=[{self.start_time}, {self.end_time}], "
            f"lock={self.lock_duration}, rate={self.annual_rate}%, staked={self.total_staked})"
        )


@dataclass
class StakeRecord:
    """
    One user's reusable stake slot.

    ``amount_staked == 0`` is both the initial and the post-unstake state.
    While it is zero, ``start_time``, ``lock_duration`` and ``rate_snapshot``
    are stale and carry no meaning.
    """

    owner: str
    amount_staked: int = 0
    start_time: int = 0
    lock_duration: int = 0
    rate_snapshot: int = 0
    reward_claimed: int = 0

    @property
    def is_active(self) -> bool:
        return self.amount_staked != 0

    @property
    def unlock_time(self) -> int:
        return self.start_time + self.lock_duration

    def copy(self) -> "StakeRecord":
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StakeRecord":
        return cls(
            owner=data["owner"],
            amount_staked=int(data.get("amount_staked", 0)),
            start_time=int(data.get("start_time", 0)),
            lock_duration=int(data.get("lock_duration", 0)),
            rate_snapshot=int(data.get("rate_snapshot", 0)),
            reward_claimed=int(data.get("reward_claimed", 0)),
        )
