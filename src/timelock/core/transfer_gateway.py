"""
In-memory transfer gateway.

Reference implementation of ITransferGateway used by the CLI and the test
suite. Balances are tracked per asset and per address. Receivers may register
a hook that runs after they are credited, which is how contract-style
receive callbacks (and re-entry attempts) are modeled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict

from .exceptions import InsufficientFunds, InvalidInput

logger = logging.getLogger(__name__)

ReceiveHook = Callable[[str, str, int], None]


@dataclass
class TransferRecord:
    asset: str
    sender: str
    recipient: str
    amount: int

    def to_dict(self) -> Dict:
        return {
            "asset": self.asset,
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": self.amount,
        }


@dataclass
class InMemoryTransferGateway:
    """
    Ledger of asset holdings outside the vault's own accounting.

    Native funds leaving the vault are not debited here: the vault's custody
    balance is the source of truth for the native asset, so `transfer` only
    checks sender holdings for foreign assets. A receive hook that raises
    undoes the transfer before the error propagates.
    """

    native_asset: str = "XAI"
    balances: dict[str, dict[str, int]] = field(default_factory=dict)
    history: list[TransferRecord] = field(default_factory=list)
    receive_hooks: dict[str, ReceiveHook] = field(default_factory=dict)

    def balance_of(self, asset: str, address: str) -> int:
        return self.balances.get(asset, {}).get(address.lower(), 0)

    def credit(self, asset: str, address: str, amount: int) -> None:
        """Give `address` holdings of `asset` (e.g. funds sent by mistake)."""
        if amount < 0:
            raise InvalidInput("Credit amount cannot be negative")
        holders = self.balances.setdefault(asset, {})
        holders[address.lower()] = holders.get(address.lower(), 0) + amount

    def on_receive(self, address: str, hook: ReceiveHook) -> None:
        self.receive_hooks[address.lower()] = hook

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        sender_norm = sender.lower()
        recipient_norm = recipient.lower()

        if asset != self.native_asset:
            held = self.balance_of(asset, sender_norm)
            if held < amount:
                raise InsufficientFunds(
                    f"Gateway: {asset} balance too low ({held} < {amount})",
                    details={"asset": asset, "held": held, "amount": amount},
                )
            self.balances[asset][sender_norm] = held - amount

        holders = self.balances.setdefault(asset, {})
        holders[recipient_norm] = holders.get(recipient_norm, 0) + amount
        record_index = len(self.history)
        self.history.append(TransferRecord(asset, sender_norm, recipient_norm, amount))

        logger.debug(
            "Gateway transfer",
            extra={
                "event": "gateway.transfer",
                "asset": asset,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            },
        )

        hook = self.receive_hooks.get(recipient_norm)
        if hook is not None:
            try:
                hook(asset, sender_norm, amount)
            except Exception:
                holders[recipient_norm] -= amount
                if asset != self.native_asset:
                    self.balances[asset][sender_norm] += amount
                del self.history[record_index]
                raise

    def to_dict(self) -> Dict:
        return {
            "native_asset": self.native_asset,
            "balances": {asset: dict(holders) for asset, holders in self.balances.items()},
            "history": [record.to_dict() for record in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "InMemoryTransferGateway":
        gateway = cls(native_asset=data.get("native_asset", "XAI"))
        gateway.balances = {
            asset: {addr: int(value) for addr, value in holders.items()}
            for asset, holders in data.get("balances", {}).items()
        }
        gateway.history = [
            TransferRecord(
                asset=item["asset"],
                sender=item["sender"],
                recipient=item["recipient"],
                amount=int(item["amount"]),
            )
            for item in data.get("history", [])
        ]
        return gateway


@dataclass
class StaticAssetRegistry:
    """IAssetRegistry that knows a single custody asset."""

    custody_asset: str

    def is_custody_asset(self, asset: str) -> bool:
        return asset.strip().upper() == self.custody_asset.strip().upper()
