"""
In-memory fungible token.

A trimmed ERC20-style token used as the default funds custodian for a
vesting ledger:
- Balance queries and transfers
- Owner-only minting, holder burning
- Pause switch (owner only) that blocks transfers
- Transfer event log
- Dictionary (de)serialization

Security features:
- Zero address checks
- Balance underflow prevention
- 256-bit amount bound
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from .exceptions import TokenError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


@dataclass
class TokenEvent:
    """Represents a token Transfer event."""

    event_type: str
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class FungibleToken:
    """
    Fungible token with ERC20 transfer semantics.

    Satisfies :class:`tokenvest.custodian.FundsCustodian`, so a ledger can
    hold its funds directly in one of these.
    """

    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0

    address: str = ""

    # Owner (for minting and pause permissions)
    owner: str = ""

    balances: dict[str, int] = field(default_factory=dict)
    events: list[TokenEvent] = field(default_factory=list)

    paused: bool = False

    UINT256_MAX: int = 2**256 - 1

    def __post_init__(self) -> None:
        if not self.address:
            addr_input = f"{self.name}{self.symbol}{time.time()}".encode()
            addr_hash = hashlib.sha3_256(addr_input).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.address = self._normalize(self.address)
        self.owner = self._normalize(self.owner)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        """
        Get the token balance of an account.

        Args:
            account: Address to check

        Returns:
            Token balance
        """
        return self.balances.get(self._normalize(account), 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (msg.sender)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenError: If transfer fails
        """
        self._require_not_paused()
        sender_norm = self._normalize(sender)
        recipient_norm = self._normalize(recipient)

        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)

        sender_balance = self.balances.get(sender_norm, 0)
        if sender_balance < amount:
            raise TokenError(
                f"{self.symbol}: transfer amount exceeds balance "
                f"({amount} > {sender_balance})",
                details={"sender": sender_norm, "amount": amount, "balance": sender_balance},
            )

        self.balances[sender_norm] = sender_balance - amount
        self.balances[recipient_norm] = self.balances.get(recipient_norm, 0) + amount

        self._emit_transfer(sender_norm, recipient_norm, amount)

        logger.debug(
            "Token transfer",
            extra={
                "event": "token.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )

        return True

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """
        Mint new tokens (owner only).

        Args:
            minter: Address calling mint (must be owner)
            to: Recipient of minted tokens
            amount: Amount to mint

        Returns:
            True if successful

        Raises:
            TokenError: If minting fails
        """
        self._require_not_paused()
        self._require_owner(minter)

        to_norm = self._normalize(to)
        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        self.total_supply += amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount

        self._emit_transfer(ZERO_ADDRESS, to_norm, amount)

        logger.info(
            "Token mint",
            extra={
                "event": "token.mint",
                "token": self.symbol,
                "to": to_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

        return True

    def burn(self, holder: str, amount: int) -> bool:
        """
        Burn tokens from holder's balance.

        Raises:
            TokenError: If the holder's balance is too small
        """
        self._require_not_paused()
        holder_norm = self._normalize(holder)
        self._validate_amount(amount)

        balance = self.balances.get(holder_norm, 0)
        if balance < amount:
            raise TokenError(
                f"{self.symbol}: burn amount exceeds balance ({amount} > {balance})"
            )

        self.balances[holder_norm] = balance - amount
        self.total_supply -= amount

        self._emit_transfer(holder_norm, ZERO_ADDRESS, amount)

        return True

    # ==================== Admin Functions ====================

    def pause(self, caller: str) -> bool:
        """Pause token transfers (owner only)."""
        self._require_owner(caller)
        self.paused = True
        return True

    def unpause(self, caller: str) -> bool:
        """Unpause token transfers (owner only)."""
        self._require_owner(caller)
        self.paused = False
        return True

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return address.lower()

    def _validate_address(self, address: str, field: str) -> None:
        if address == ZERO_ADDRESS or not address:
            raise TokenError(f"{self.symbol}: {field} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TokenError(f"{self.symbol}: amount must be an integer")
        if amount < 0:
            raise TokenError(f"{self.symbol}: amount cannot be negative")
        if amount > self.UINT256_MAX:
            raise TokenError(f"{self.symbol}: amount exceeds uint256")

    def _require_owner(self, caller: str) -> None:
        if self._normalize(caller) != self.owner:
            raise TokenError(f"{self.symbol}: caller is not owner")

    def _require_not_paused(self) -> None:
        if self.paused:
            raise TokenError(f"{self.symbol}: token is paused")

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Transfer",
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize token state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "balances": dict(self.balances),
            "paused": self.paused,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FungibleToken":
        """Deserialize token state from dictionary."""
        token = cls(
            name=data["name"],
            symbol=data["symbol"],
            decimals=data.get("decimals", 18),
            total_supply=data.get("total_supply", 0),
            address=data.get("address", ""),
            owner=data.get("owner", ""),
            paused=data.get("paused", False),
        )
        token.balances = {k: int(v) for k, v in data.get("balances", {}).items()}
        return token
