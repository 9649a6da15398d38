"""
Fungible token ledger used as the staking pool's transfer service.

Provides the balance bookkeeping the staking ledger moves funds through:
- Minting (owner only)
- Transfers authorized by the sending account's own identity
- Program accounts whose outbound transfers require a custody credential

Security features:
- Balance underflow prevention
- 64-bit amount bounds
- Program accounts cannot be drained by naming them as the principal
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any

from .custody import CustodyCredential
from .exceptions import TokenTransferError

logger = logging.getLogger(__name__)

MINT_ADDRESS = "0x" + "0" * 40


@dataclass
class TokenLedger:
    """
    In-process token-transfer service.

    Plain accounts are identified by their owner's identity string and a
    transfer out of them is authorized when the principal equals the
    account. Program accounts (the pool's custody account) are registered
    with the fingerprint of a ``CustodyCredential`` and only that credential
    can authorize transfers out of them.
    """

    name: str
    symbol: str
    decimals: int = 6
    owner: str = ""
    total_supply: int = 0

    balances: dict[str, int] = field(default_factory=dict)
    program_accounts: dict[str, str] = field(default_factory=dict)

    UINT64_MAX: int = 2**64 - 1

    _lock: Any = field(default_factory=RLock, init=False, repr=False, compare=False)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    # ==================== State-Changing Functions ====================

    def register_program_account(self, credential: CustodyCredential) -> str:
        """
        Create a program-controlled account bound to ``credential``.

        Returns:
            The account name

        Raises:
            TokenTransferError: If the account already exists
        """
        account = credential.custody_account
        with self._lock:
            if account in self.program_accounts or account in self.balances:
                raise TokenTransferError(f"Token: account {account} already exists")
            self.program_accounts[account] = credential.fingerprint()
            self.balances[account] = 0
        logger.info(
            "Program account registered",
            extra={"event": "token.program_account", "token": self.symbol, "account": account[:18]},
        )
        return account

    def unregister_program_account(self, credential: CustodyCredential) -> None:
        """Remove an empty program account (used to undo a failed pool setup)."""
        account = credential.custody_account
        with self._lock:
            fingerprint = self.program_accounts.get(account)
            if fingerprint is None or not credential.matches(fingerprint):
                raise TokenTransferError(f"Token: credential does not control {account}")
            if self.balances.get(account, 0) != 0:
                raise TokenTransferError(f"Token: program account {account} is not empty")
            del self.program_accounts[account]
            self.balances.pop(account, None)

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """
        Mint new tokens (owner only).

        Raises:
            TokenTransferError: If minting fails
        """
        if minter != self.owner:
            raise TokenTransferError("Token: caller is not owner")
        self._validate_address(to, "recipient")
        self._validate_amount(amount)

        with self._lock:
            if self.total_supply + amount > self.UINT64_MAX:
                raise TokenTransferError("Token: mint would exceed 64-bit supply")
            self.total_supply += amount
            self.balances[to] = self.balances.get(to, 0) + amount

        logger.info(
            "Token mint",
            extra={"event": "token.mint", "token": self.symbol, "to": to[:18], "amount": amount},
        )
        return True

    def transfer(
        self,
        from_account: str,
        to_account: str,
        authorizing_principal: str | CustodyCredential,
        amount: int,
    ) -> bool:
        """
        Move ``amount`` from ``from_account`` to ``to_account``.

        Args:
            from_account: Account debited
            to_account: Account credited
            authorizing_principal: Identity of the account holder, or the
                custody credential for a program account
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenTransferError: If the transfer is unauthorized or unfunded
        """
        self._validate_address(from_account, "sender")
        self._validate_address(to_account, "recipient")
        self._validate_amount(amount)

        with self._lock:
            self._authorize(from_account, authorizing_principal)

            sender_balance = self.balances.get(from_account, 0)
            if sender_balance < amount:
                raise TokenTransferError(
                    f"Token: transfer amount exceeds balance ({amount} > {sender_balance})"
                )

            self.balances[from_account] = sender_balance - amount
            self.balances[to_account] = self.balances.get(to_account, 0) + amount

        logger.debug(
            "Token transfer",
            extra={
                "event": "token.transfer",
                "token": self.symbol,
                "from": from_account[:18],
                "to": to_account[:18],
                "amount": amount,
            },
        )
        return True

    # ==================== Helpers ====================

    def _authorize(self, from_account: str, principal: str | CustodyCredential) -> None:
        fingerprint = self.program_accounts.get(from_account)
        if fingerprint is not None:
            if not isinstance(principal, CustodyCredential) or not principal.matches(fingerprint):
                raise TokenTransferError(f"Token: unauthorized transfer from program account {from_account}")
            return
        if isinstance(principal, CustodyCredential) or principal != from_account:
            raise TokenTransferError(f"Token: {principal!r} cannot authorize transfers from {from_account}")

    def _validate_address(self, address: str, role: str) -> None:
        if not address or address == MINT_ADDRESS:
            raise TokenTransferError(f"Token: {role} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TokenTransferError("Token: amount must be an integer")
        if amount < 0:
            raise TokenTransferError("Token: amount cannot be negative")
        if amount > self.UINT64_MAX:
            raise TokenTransferError("Token: amount exceeds uint64")

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "name": self.name,
                "symbol": self.symbol,
                "decimals": self.decimals,
                "owner": self.owner,
                "total_supply": self.total_supply,
                "balances": dict(self.balances),
                "program_accounts": dict(self.program_accounts),
            }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenLedger":
        token = cls(
            name=data["name"],
            symbol=data["symbol"],
            decimals=data.get("decimals", 6),
            owner=data.get("owner", ""),
            total_supply=data.get("total_supply", 0),
        )
        token.balances = {k: int(v) for k, v in data.get("balances", {}).items()}
        token.program_accounts = dict(data.get("program_accounts", {}))
        return token
