"""
Custody authority for the staking pool.

The pool holds staked principal and reward funding in a custody account that
no user can sign for. Outbound transfers from that account are authorized by
a ``CustodyCredential``: an object created once alongside the pool and
presented by the ledger to the token ledger. The token ledger only stores a
digest of the credential, so knowing the custody account name is never
enough to move funds out of it.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

CUSTODY_SEED = b"vault"
POOL_SEED = b"state"


def derive_custody_account(asset_id: str, program_id: str = "stakevault") -> str:
    """
    Deterministic name of the pool's custody account.

    Re-deriving with the same inputs always yields the same account.
    """
    digest = hashlib.sha256(CUSTODY_SEED + b":" + program_id.encode() + b":" + asset_id.encode()).hexdigest()
    return f"custody:{digest[:40]}"


class CustodyCredential:
    """Capability that authorizes transfers out of a single custody account."""

    __slots__ = ("custody_account", "_token")

    def __init__(self, custody_account: str, token: str) -> None:
        if not custody_account:
            raise ValueError("Custody account cannot be empty.")
        if not token:
            raise ValueError("Custody credential token cannot be empty.")
        self.custody_account = custody_account
        self._token = token

    @classmethod
    def generate(cls, custody_account: str) -> "CustodyCredential":
        return cls(custody_account, secrets.token_hex(32))

    @property
    def token(self) -> str:
        return self._token

    def fingerprint(self) -> str:
        """Digest the token ledger stores to recognise this credential."""
        return hashlib.sha256(POOL_SEED + b":" + self._token.encode()).hexdigest()

    def matches(self, fingerprint: str) -> bool:
        return hmac.compare_digest(self.fingerprint(), fingerprint)

    def __repr__(self) -> str:
        return f"CustodyCredential(account='{self.custody_account}')"
