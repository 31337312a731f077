"""
Timelock Vault - Collaborator Protocol Interfaces

The vault only decides whether and how much may move. Reading time, moving
funds and vetting asset identities are delegated to collaborators that
satisfy these structural interfaces, so tests and hosts can inject their own.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IClock(Protocol):
    """Source of the current time as integer Unix seconds.

    Implementations MUST be non-decreasing across calls.
    """

    def now(self) -> int:
        ...


@runtime_checkable
class ITransferGateway(Protocol):
    """
    Executes outgoing transfers on behalf of the vault.

    The vault calls `transfer` only after its own state has been updated, so
    an implementation that hands control to the receiver (and thereby allows
    re-entry) cannot observe stale balances.
    """

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """
        Move `amount` of `asset` from `sender` to `recipient`.

        Raises:
            InsufficientFunds: If the sender does not hold enough of the asset
        """
        ...


@runtime_checkable
class IAssetRegistry(Protocol):
    """Boundary check that an asset handle is not the vault's custody asset."""

    def is_custody_asset(self, asset: str) -> bool:
        ...
