"""
tokenvest - Custodian Protocol Interface

The ledger never holds funds itself. A custodian reports how much the ledger
owns and moves funds on its behalf. Using Protocol (from typing) keeps the
ledger decoupled from any concrete token and lets tests inject fakes that
fail transfers or call back into the ledger.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class FundsCustodian(Protocol):
    """
    Protocol for the fungible-funds collaborator of a vesting ledger.

    Implementations must treat ``amount`` as a non-negative integer in base
    units.
    """

    address: str

    def balance_of(self, account: str) -> int:
        """
        Get the balance held by an account.

        Args:
            account: Account address

        Returns:
            Balance in base units (0 for unknown accounts)
        """
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move funds from sender to recipient.

        Args:
            sender: Address funds are taken from (the ledger)
            recipient: Address receiving funds
            amount: Amount to move

        Returns:
            True if the transfer happened. Returning False or raising is
            treated by the ledger as a failed transfer.
        """
        ...
