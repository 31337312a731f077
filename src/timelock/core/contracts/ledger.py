"""
Per-recipient allocation accounting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from ..exceptions import InsufficientFunds, InvalidInput
from ..safe_math import ArithmeticBoundsError, checked_add


@dataclass(frozen=True)
class RecipientAccount:
    """
    Snapshot of one recipient's position.

    `allocated` is principal not yet withdrawn; `withdrawn` is the cumulative
    amount already released. Their sum is everything ever allocated.
    """

    allocated: int = 0
    withdrawn: int = 0

    @property
    def lifetime_total(self) -> int:
        return self.allocated + self.withdrawn


ZERO_ACCOUNT = RecipientAccount()


@dataclass
class AllocationLedger:
    """
    Mapping from normalized recipient address to RecipientAccount.

    Entries are created on first write and never removed. Reads of unknown
    recipients return a zero-valued account.
    """

    accounts: dict[str, RecipientAccount] = field(default_factory=dict)

    def get(self, recipient: str) -> RecipientAccount:
        return self.accounts.get(recipient, ZERO_ACCOUNT)

    def __contains__(self, recipient: str) -> bool:
        return recipient in self.accounts

    def __len__(self) -> int:
        return len(self.accounts)

    @property
    def total_allocated(self) -> int:
        return sum(account.allocated for account in self.accounts.values())

    @property
    def total_withdrawn(self) -> int:
        return sum(account.withdrawn for account in self.accounts.values())

    def credit(self, recipient: str, amount: int) -> RecipientAccount:
        if amount <= 0:
            raise InvalidInput("Allocation amount must be positive")
        current = self.get(recipient)
        try:
            allocated = checked_add(current.allocated, amount)
        except ArithmeticBoundsError as exc:
            raise InvalidInput(f"Allocation overflows recipient balance: {exc}") from exc
        updated = RecipientAccount(allocated=allocated, withdrawn=current.withdrawn)
        self.accounts[recipient] = updated
        return updated

    def debit(self, recipient: str, amount: int) -> RecipientAccount:
        """Move `amount` from allocated to withdrawn."""
        current = self.get(recipient)
        if amount > current.allocated:
            raise InsufficientFunds(
                f"Allocated balance too low ({current.allocated} < {amount})",
                details={"allocated": current.allocated, "amount": amount},
            )
        updated = RecipientAccount(
            allocated=current.allocated - amount,
            withdrawn=current.withdrawn + amount,
        )
        self.accounts[recipient] = updated
        return updated

    def copy(self) -> "AllocationLedger":
        # RecipientAccount is frozen, so a shallow dict copy is a full snapshot
        return AllocationLedger(accounts=dict(self.accounts))

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            recipient: {"allocated": account.allocated, "withdrawn": account.withdrawn}
            for recipient, account in self.accounts.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, int]]) -> "AllocationLedger":
        accounts: dict[str, RecipientAccount] = {}
        for recipient, entry in data.items():
            allocated = int(entry.get("allocated", 0))
            withdrawn = int(entry.get("withdrawn", 0))
            if allocated < 0 or withdrawn < 0:
                raise InvalidInput(f"Stored account for {recipient} has a negative balance")
            accounts[recipient] = RecipientAccount(allocated=allocated, withdrawn=withdrawn)
        return cls(accounts=accounts)
