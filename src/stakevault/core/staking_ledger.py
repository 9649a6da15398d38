"""
Fixed-rate staking ledger.

Users lock the pool's asset for the configured duration and accrue linear
rewards at a fixed annual rate, paid from a custody account the pool owner
funds once at initialization.

Lifecycle per user record:
    EMPTY --stake--> ACTIVE --unstake--> EMPTY
``claim_rewards`` pays newly accrued rewards and leaves the record ACTIVE.

Every operation checks all preconditions before touching state, issues at
most one transfer, and commits record changes only after that transfer went
through. Lock duration and rate are frozen into the record at stake time, so
``update_pool`` never changes the terms of an open stake.

Custody solvency is not enforced: if rewards plus principal owed exceed the
custody balance, later claims or unstakes fail with TransferFailedError and
leave the caller's record untouched. ``solvency_report`` exposes the gap.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from . import metrics
from .account_store import AccountStore
from .config import DEFAULT_INITIAL_FUNDING
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
from .rewards import U64_MAX, calculate_rewards
from .token_ledger import TokenLedger

logger = logging.getLogger(__name__)

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


class StakingLedger:
    """Orchestrates the pool lifecycle over a token ledger and an account store."""

    def __init__(
        self,
        token: TokenLedger,
        store: AccountStore | None = None,
        time_provider: Callable[[], int] | None = None,
        program_id: str = "stakevault",
    ):
        self.token = token
        self.store = store if store is not None else AccountStore()
        self.program_id = program_id
        self._time_provider = time_provider or (lambda: int(time.time()))

    # ==================== Owner operations ====================

    def initialize_pool(
        self,
        owner: str,
        start_time: int,
        end_time: int,
        lock_duration: int,
        annual_rate: int,
        initial_funding: int | None = None,
    ) -> PoolConfig:
        """
        Create the pool singleton and seed its custody account from ``owner``.

        Args:
            owner: Identity allowed to reconfigure the pool
            start_time: First timestamp at which stakes may open
            end_time: Last timestamp at which stakes may open
            lock_duration: Seconds a stake stays locked
            annual_rate: Whole-percent annual reward rate
            initial_funding: Amount moved from the owner into custody
                (defaults to ``DEFAULT_INITIAL_FUNDING``; 0 skips funding)

        Returns:
            The created PoolConfig

        Raises:
            PoolAlreadyInitializedError: If a pool already exists
            InvalidPoolParametersError: If the parameters are inconsistent
            TransferFailedError: If the funding transfer is declined
        """
        funding = DEFAULT_INITIAL_FUNDING if initial_funding is None else initial_funding
        with self.store.pool_lock():
            if self.store.pool_exists():
                raise self._reject("initialize_pool", PoolAlreadyInitializedError("Pool is already initialized"))
            if not owner:
                raise self._reject("initialize_pool", InvalidPoolParametersError("Pool owner cannot be empty"))
            self._validate_pool_parameters("initialize_pool", start_time, end_time, lock_duration, annual_rate)
            if not self._is_u64(funding):
                raise self._reject(
                    "initialize_pool",
                    InvalidPoolParametersError("Initial funding must be a 64-bit unsigned integer", {"initial_funding": funding}),
                )

            custody_account = derive_custody_account(self.token.symbol, self.program_id)
            credential = CustodyCredential.generate(custody_account)
            try:
                self.token.register_program_account(credential)
            except TokenTransferError as exc:
                raise self._transfer_failed("initialize_pool", exc) from exc

            if funding > 0:
                try:
                    self.token.transfer(owner, custody_account, owner, funding)
                except TokenTransferError as exc:
                    self.token.unregister_program_account(credential)
                    raise self._transfer_failed("initialize_pool", exc) from exc

            pool = PoolConfig(
                owner=owner,
                asset_id=self.token.symbol,
                custody_account=custody_account,
                start_time=start_time,
                end_time=end_time,
                lock_duration=lock_duration,
                annual_rate=annual_rate,
                custody_authority_token=credential.token,
                total_staked=0,
                initial_funding=funding,
            )
            try:
                self.store.save_pool(pool)
            except StorageError:
                if funding > 0:
                    self.token.transfer(custody_account, owner, credential, funding)
                self.token.unregister_program_account(credential)
                raise

        metrics.record_operation("initialize_pool", "success")
        logger.info(
            "Pool initialized by %s: window [%s, %s], lock %ss, rate %s%%, funded %s",
            owner,
            start_time,
            end_time,
            lock_duration,
            annual_rate,
            funding,
            extra={"event": "staking.pool_initialized", "custody": custody_account[:18]},
        )
        return pool.public_view()

    def update_pool(
        self,
        caller: str,
        start_time: int,
        end_time: int,
        lock_duration: int,
        annual_rate: int,
    ) -> PoolConfig:
        """
        Overwrite the pool's window, lock duration and rate (owner only).

        Open stakes keep the lock duration and rate they were opened with.

        Raises:
            PoolNotInitializedError: If no pool exists
            UnauthorizedError: If ``caller`` is not the pool owner
            InvalidPoolParametersError: If the parameters are inconsistent
        """
        with self.store.pool_lock():
            pool = self._require_pool("update_pool")
            if caller != pool.owner:
                raise self._reject(
                    "update_pool",
                    UnauthorizedError(f"{caller} is not the pool owner", {"caller": caller}),
                )
            self._validate_pool_parameters("update_pool", start_time, end_time, lock_duration, annual_rate)

            pool.start_time = start_time
            pool.end_time = end_time
            pool.lock_duration = lock_duration
            pool.annual_rate = annual_rate
            self.store.save_pool(pool)

        metrics.record_operation("update_pool", "success")
        logger.info(
            "Pool updated: window [%s, %s], lock %ss, rate %s%%",
            start_time,
            end_time,
            lock_duration,
            annual_rate,
            extra={"event": "staking.pool_updated"},
        )
        return pool.public_view()

    # ==================== User operations ====================

    def stake(self, user: str, amount: int, current_time: int | None = None) -> StakeRecord:
        """
        Lock ``amount`` from ``user`` into custody and open a stake.

        Raises:
            InvalidAmountError: If amount is not a positive 64-bit integer
            StakingNotStartedError: If the staking window has not opened
            StakingEndedError: If the staking window has closed
            AlreadyStakedError: If the user already has an active stake
            TransferFailedError: If the user's transfer is declined
        """
        if not user:
            raise self._reject("stake", ValidationError("User identity cannot be empty"))
        if not self._is_u64(amount) or amount == 0:
            raise self._reject(
                "stake",
                InvalidAmountError("Stake amount must be a positive 64-bit integer", {"amount": amount}),
            )

        with self.store.record_lock(user):
            with self.store.pool_lock():
                pool = self._require_pool("stake")
            now = self._current_time(current_time)

            if not pool.is_open(now):
                if now < pool.start_time:
                    raise self._reject(
                        "stake",
                        StakingNotStartedError(
                            f"Staking opens at {pool.start_time}", {"now": now, "start_time": pool.start_time}
                        ),
                    )
                raise self._reject(
                    "stake",
                    StakingEndedError(f"Staking closed at {pool.end_time}", {"now": now, "end_time": pool.end_time}),
                )

            record = self.store.load_stake(user) or StakeRecord(owner=user)
            if record.is_active:
                raise self._reject(
                    "stake",
                    AlreadyStakedError(
                        f"{user} already has an active stake", {"amount_staked": record.amount_staked}
                    ),
                )

            self._transfer("stake", user, pool.custody_account, user, amount)

            opened = StakeRecord(
                owner=user,
                amount_staked=amount,
                start_time=now,
                lock_duration=pool.lock_duration,
                rate_snapshot=pool.annual_rate,
                reward_claimed=0,
            )
            with self.store.pool_lock():
                current = self._require_pool("stake")
                current.total_staked += amount
                self._commit(
                    "stake",
                    current,
                    opened,
                    undo=lambda: self.token.transfer(
                        pool.custody_account, user, self._credential(pool), amount
                    ),
                )

        metrics.record_operation("stake", "success")
        metrics.record_stake(amount, current.total_staked)
        logger.info(
            "Stake opened by %s: %s locked until %s at %s%%",
            user,
            amount,
            opened.unlock_time,
            opened.rate_snapshot,
            extra={"event": "staking.stake", "amount": amount},
        )
        return opened

    def claim_rewards(self, user: str, current_time: int | None = None) -> int:
        """
        Pay ``user`` the rewards accrued since their last claim.

        Returns:
            Amount paid out

        Raises:
            NoActiveStakeError: If the user has no active stake
            NoRewardsAvailableError: If nothing new has accrued
            TransferFailedError: If custody cannot cover the payout
        """
        with self.store.record_lock(user):
            with self.store.pool_lock():
                pool = self._require_pool("claim_rewards")
            record = self._require_active_stake("claim_rewards", user)
            now = self._current_time(current_time)

            try:
                total = calculate_rewards(record.amount_staked, record.rate_snapshot, now - record.start_time)
            except RewardOverflowError as exc:
                self._reject("claim_rewards", exc)
                raise
            if total <= record.reward_claimed:
                raise self._reject(
                    "claim_rewards",
                    NoRewardsAvailableError(
                        "No rewards are available to claim",
                        {"accrued": total, "reward_claimed": record.reward_claimed},
                    ),
                )
            claimable = total - record.reward_claimed

            self._transfer("claim_rewards", pool.custody_account, user, self._credential(pool), claimable)

            record.reward_claimed = total
            self._commit(
                "claim_rewards",
                None,
                record,
                undo=lambda: self.token.transfer(user, pool.custody_account, user, claimable),
            )

        metrics.record_operation("claim_rewards", "success")
        metrics.record_reward_paid(claimable)
        logger.info(
            "Rewards claimed by %s: %s (cumulative %s)",
            user,
            claimable,
            total,
            extra={"event": "staking.claim", "amount": claimable},
        )
        return claimable

    def unstake(self, user: str, current_time: int | None = None) -> int:
        """
        Return ``user``'s principal once the lock has expired and close the stake.

        Rewards not claimed before unstaking are forfeited.

        Returns:
            Principal returned

        Raises:
            NoActiveStakeError: If the user has no active stake
            LockPeriodNotOverError: If the lock has not yet expired
            TransferFailedError: If custody cannot cover the principal
        """
        with self.store.record_lock(user):
            with self.store.pool_lock():
                pool = self._require_pool("unstake")
            record = self._require_active_stake("unstake", user)
            now = self._current_time(current_time)

            if now < record.unlock_time:
                raise self._reject(
                    "unstake",
                    LockPeriodNotOverError(
                        f"Stake is locked until {record.unlock_time}",
                        {"now": now, "unlock_time": record.unlock_time},
                    ),
                )

            amount = record.amount_staked
            self._transfer("unstake", pool.custody_account, user, self._credential(pool), amount)

            closed = record.copy()
            closed.amount_staked = 0
            closed.reward_claimed = 0
            with self.store.pool_lock():
                current = self._require_pool("unstake")
                current.total_staked = max(0, current.total_staked - amount)
                self._commit(
                    "unstake",
                    current,
                    closed,
                    undo=lambda: self.token.transfer(user, pool.custody_account, user, amount),
                )

        metrics.record_operation("unstake", "success")
        metrics.record_unstake(amount, current.total_staked)
        logger.info(
            "Stake closed by %s: %s returned",
            user,
            amount,
            extra={"event": "staking.unstake", "amount": amount},
        )
        return amount

    # ==================== Views ====================

    def get_pool(self) -> PoolConfig | None:
        """Pool configuration without the custody seed."""
        pool = self.store.load_pool()
        return pool.public_view() if pool is not None else None

    def get_stake(self, user: str) -> StakeRecord | None:
        return self.store.load_stake(user)

    def pending_rewards(self, user: str, current_time: int | None = None) -> int:
        """
        Amount ``claim_rewards`` would pay right now (0 if nothing is claimable).

        An accrual too large for 64 bits is reported as ``U64_MAX``; claiming
        it raises RewardOverflowError.
        """
        record = self.store.load_stake(user)
        if record is None or not record.is_active:
            return 0
        total, _ = self._accrued(record, self._current_time(current_time))
        return max(0, total - record.reward_claimed)

    def unlock_time(self, user: str) -> int | None:
        record = self.store.load_stake(user)
        if record is None or not record.is_active:
            return None
        return record.unlock_time

    def solvency_report(self, current_time: int | None = None) -> dict[str, Any]:
        """
        Compare the custody balance with what the pool currently owes.

        Liabilities are open principal plus rewards accrued but not yet
        claimed; rewards still to accrue are not included. Stakes whose
        accrual overflows 64 bits are counted at ``U64_MAX`` and listed in
        ``overflowing_stakes``.
        """
        pool = self.store.load_pool()
        if pool is None:
            raise PoolNotInitializedError("Pool is not initialized")
        now = self._current_time(current_time)

        outstanding_rewards = 0
        open_stakes = 0
        overflowing = []
        for record in self.store.list_stakes():
            if not record.is_active:
                continue
            open_stakes += 1
            accrued, overflowed = self._accrued(record, now)
            if overflowed:
                overflowing.append(record.owner)
            outstanding_rewards += max(0, accrued - record.reward_claimed)

        if overflowing:
            logger.warning(
                "Reward accrual exceeds 64 bits for %d stake(s)",
                len(overflowing),
                extra={"event": "staking.reward_overflow", "stakes": len(overflowing)},
            )

        custody_balance = self.token.balance_of(pool.custody_account)
        liabilities = pool.total_staked + outstanding_rewards
        return {
            "timestamp": now,
            "custody_balance": custody_balance,
            "total_staked": pool.total_staked,
            "open_stakes": open_stakes,
            "outstanding_rewards": outstanding_rewards,
            "overflowing_stakes": sorted(overflowing),
            "liabilities": liabilities,
            "shortfall": max(0, liabilities - custody_balance),
            "solvent": custody_balance >= liabilities,
        }

    # ==================== Helpers ====================

    def _current_time(self, current_time: int | None = None) -> int:
        timestamp = current_time if current_time is not None else self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                "Timestamp must be an integer", {"timestamp": repr(timestamp)}
            ) from exc

    @staticmethod
    def _accrued(record: StakeRecord, now: int) -> tuple[int, bool]:
        try:
            return calculate_rewards(record.amount_staked, record.rate_snapshot, now - record.start_time), False
        except RewardOverflowError:
            return U64_MAX, True

    def _credential(self, pool: PoolConfig) -> CustodyCredential:
        return CustodyCredential(pool.custody_account, pool.custody_authority_token)

    def _require_pool(self, operation: str) -> PoolConfig:
        pool = self.store.load_pool()
        if pool is None:
            raise self._reject(operation, PoolNotInitializedError("Pool is not initialized"))
        return pool

    def _require_active_stake(self, operation: str, user: str) -> StakeRecord:
        record = self.store.load_stake(user)
        if record is None or not record.is_active:
            raise self._reject(operation, NoActiveStakeError(f"{user} has no active stake"))
        return record

    def _validate_pool_parameters(
        self, operation: str, start_time: int, end_time: int, lock_duration: int, annual_rate: int
    ) -> None:
        for name, value in (("start_time", start_time), ("end_time", end_time), ("lock_duration", lock_duration)):
            if not self._is_i64(value):
                raise self._reject(
                    operation, InvalidPoolParametersError(f"{name} must be a 64-bit integer", {name: value})
                )
        if start_time > end_time:
            raise self._reject(
                operation,
                InvalidPoolParametersError(
                    "Start time must not be after end time", {"start_time": start_time, "end_time": end_time}
                ),
            )
        if lock_duration < 0:
            raise self._reject(
                operation, InvalidPoolParametersError("Lock duration cannot be negative", {"lock_duration": lock_duration})
            )
        if not self._is_u64(annual_rate):
            raise self._reject(
                operation,
                InvalidPoolParametersError("Annual rate must be a 64-bit unsigned integer", {"annual_rate": annual_rate}),
            )

    def _transfer(
        self,
        operation: str,
        from_account: str,
        to_account: str,
        principal: str | CustodyCredential,
        amount: int,
    ) -> None:
        try:
            self.token.transfer(from_account, to_account, principal, amount)
        except TokenTransferError as exc:
            raise self._transfer_failed(operation, exc) from exc

    def _commit(
        self,
        operation: str,
        pool: PoolConfig | None,
        record: StakeRecord,
        undo: Callable[[], Any],
    ) -> None:
        """Persist the operation's state, reversing its transfer if the write fails."""
        try:
            self.store.commit(pool=pool, records=[record])
        except StorageError:
            logger.error(
                "State write failed during %s; reversing transfer",
                operation,
                extra={"event": "staking.commit_failed", "operation": operation},
            )
            undo()
            metrics.record_operation(operation, StorageError.code)
            raise

    def _transfer_failed(self, operation: str, exc: TokenTransferError) -> TransferFailedError:
        error = TransferFailedError(str(exc), {"operation": operation})
        metrics.record_operation(operation, error.code)
        logger.error(
            "Transfer failed during %s: %s",
            operation,
            exc,
            extra={"event": "staking.transfer_failed", "operation": operation},
        )
        return error

    def _reject(self, operation: str, error: StakingError) -> StakingError:
        metrics.record_operation(operation, error.code)
        logger.warning(
            "%s rejected: %s",
            operation,
            error.message,
            extra={"event": "staking.rejected", "operation": operation, "code": error.code},
        )
        return error

    @staticmethod
    def _is_u64(value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= U64_MAX

    @staticmethod
    def _is_i64(value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool) and I64_MIN <= value <= I64_MAX
