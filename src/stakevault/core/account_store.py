"""
StakeVault - Account Storage

Keeps the pool singleton and per-user stake records, keyed deterministically,
and hands out the per-key locks that serialize operations on one record.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from threading import Lock, RLock
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import StorageError
from .records import PoolConfig, StakeRecord

logger = logging.getLogger(__name__)

POOL_KEY = "pool"
STAKE_PREFIX = "stake:"


def stake_record_key(user: str) -> str:
    """Deterministic storage key of ``user``'s stake record."""
    return STAKE_PREFIX + hashlib.sha256(user.encode("utf-8")).hexdigest()


class AccountStore:
    """
    In-memory account store.

    Records are stored as plain dicts and every load returns a fresh object,
    so callers mutate a private copy and nothing is visible to other callers
    until it is committed.
    """

    def __init__(self) -> None:
        self._accounts: Dict[str, Dict[str, Any]] = {}
        self._record_locks: Dict[str, RLock] = {}
        self._locks_guard = Lock()
        self._pool_lock = RLock()

    # ==================== Locks ====================

    def record_lock(self, user: str) -> RLock:
        """Lock serializing operations on ``user``'s record."""
        key = stake_record_key(user)
        with self._locks_guard:
            lock = self._record_locks.get(key)
            if lock is None:
                lock = RLock()
                self._record_locks[key] = lock
            return lock

    def pool_lock(self) -> RLock:
        return self._pool_lock

    # ==================== Reads ====================

    def pool_exists(self) -> bool:
        return POOL_KEY in self._accounts

    def load_pool(self) -> Optional[PoolConfig]:
        data = self._accounts.get(POOL_KEY)
        return PoolConfig.from_dict(data) if data is not None else None

    def load_stake(self, user: str) -> Optional[StakeRecord]:
        data = self._accounts.get(stake_record_key(user))
        return StakeRecord.from_dict(data) if data is not None else None

    def list_stakes(self) -> List[StakeRecord]:
        return [
            StakeRecord.from_dict(data)
            for key, data in list(self._accounts.items())
            if key.startswith(STAKE_PREFIX)
        ]

    def snapshot(self) -> Dict[str, Any]:
        return {key: dict(value) for key, value in self._accounts.items()}

    # ==================== Writes ====================

    def commit(self, pool: Optional[PoolConfig] = None, records: Iterable[StakeRecord] = ()) -> None:
        """Write the pool and any records as a single unit."""
        updates: Dict[str, Dict[str, Any]] = {}
        if pool is not None:
            updates[POOL_KEY] = pool.to_dict()
        for record in records:
            updates[stake_record_key(record.owner)] = record.to_dict()
        if updates:
            self._apply(updates)

    def save_pool(self, pool: PoolConfig) -> None:
        self.commit(pool=pool)

    def save_stake(self, record: StakeRecord) -> None:
        self.commit(records=[record])

    def _apply(self, updates: Dict[str, Dict[str, Any]]) -> None:
        self._accounts.update(updates)


class JsonAccountStore(AccountStore):
    """
    Account store persisted to a JSON file.

    The file is rewritten through a temporary file and ``os.replace`` so a
    crash mid-write never leaves a truncated state file behind. When the
    write fails the in-memory view is reverted, keeping memory and disk in
    agreement. Extra top-level sections (e.g. the token ledger) are stored
    alongside the accounts.
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self._sections: Dict[str, Any] = {}
        self._io_lock = RLock()
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(
                "Failed to load state from %s: %s",
                self.path,
                type(e).__name__,
                extra={"event": "store.load_failed", "error": str(e)},
            )
            raise StorageError(f"Cannot read state file {self.path}", {"error": str(e)}) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("accounts", {}), dict):
            raise StorageError(f"State file {self.path} is malformed")
        self._accounts = payload.get("accounts", {})
        self._sections = {k: v for k, v in payload.items() if k != "accounts"}
        logger.debug(
            "Loaded %d accounts from %s",
            len(self._accounts),
            self.path,
            extra={"event": "store.loaded"},
        )

    def _apply(self, updates: Dict[str, Dict[str, Any]]) -> None:
        with self._io_lock:
            previous = {key: self._accounts.get(key) for key in updates}
            super()._apply(updates)
            try:
                self._persist()
            except StorageError:
                for key, value in previous.items():
                    if value is None:
                        self._accounts.pop(key, None)
                    else:
                        self._accounts[key] = value
                raise

    def load_section(self, name: str) -> Optional[Any]:
        return self._sections.get(name)

    def save_section(self, name: str, data: Any) -> None:
        if name == "accounts":
            raise ValueError("'accounts' is a reserved section name")
        with self._io_lock:
            self._sections[name] = data
            self._persist()

    def _persist(self) -> None:
        payload = dict(self._sections)
        payload["accounts"] = self._accounts
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".stakevault-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(
                "Failed to save state to %s: %s",
                self.path,
                type(e).__name__,
                extra={"event": "store.save_failed", "error": str(e)},
            )
            raise StorageError(f"Cannot write state file {self.path}", {"error": str(e)}) from e
