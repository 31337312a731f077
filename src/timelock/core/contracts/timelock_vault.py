"""
Timelock Vault Contract.

Custodial ledger that holds native funds deposited by a single operator and
releases them to recipients on a linear vesting schedule:

- Schedule: cliff and release edges fixed once, relative to the call time
- Allocation: operator credits recipients (single or bulk) while deposits are open
- Finalization: one-way switch after which no deposits, allocations or sweeps
- Withdrawal: recipients pull whatever has vested, self-service only
- Recovery: operator can rescue foreign assets, and sweep unallocated native
  funds until finalization

Security features:
- Checks-effects-interactions ordering on every outgoing transfer
- Single-slot reentrancy latch around every mutating operation
- Whole-call rollback on any failure
- Custody always covers the sum of outstanding allocations
- Allocation floor so every allocation vests at least one unit per second
"""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Sequence

from .. import vault_metrics
from ..clock import SystemClock
from ..exceptions import (
    AmountTooSmall,
    ExceedsVested,
    InsufficientFunds,
    InvalidInput,
    LengthMismatch,
    TooEarly,
    Unauthorized,
    ZeroAddress,
)
from ..protocols import IAssetRegistry, IClock, ITransferGateway
from ..safe_math import UINT256_MAX, ArithmeticBoundsError, checked_add
from ..transfer_gateway import InMemoryTransferGateway
from .ledger import AllocationLedger, RecipientAccount
from .lifecycle import DEPOSITS_OPEN, SCHEDULE_READY, LifecycleGate, LifecycleState
from .reentrancy import ReentrancyGuard
from .schedule import VestingSchedule
from .vesting import vested_for, withdrawable_for

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40

TRANSFER_EVENT = "Transfer"
ALLOCATION_EVENT = "AllocationPerformed"


@dataclass
class VaultEvent:
    """Notification emitted by a successful vault operation."""

    event_type: str  # "Transfer" or "AllocationPerformed"
    from_address: str
    to_address: str
    value: int
    asset: str = ""
    timestamp: int = 0

    def to_dict(self) -> Dict:
        return {
            "event_type": self.event_type,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "value": self.value,
            "asset": self.asset,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "VaultEvent":
        return cls(
            event_type=data["event_type"],
            from_address=data["from_address"],
            to_address=data["to_address"],
            value=int(data["value"]),
            asset=data.get("asset", ""),
            timestamp=int(data.get("timestamp", 0)),
        )


@dataclass
class _Snapshot:
    ledger: AllocationLedger
    custody_balance: int
    schedule: VestingSchedule
    state: LifecycleState
    event_count: int


@dataclass
class TimelockVault:
    """
    Custodial linear-vesting vault.

    Every state-changing method takes the authenticated caller address as its
    first argument (msg.sender). Each call reads the clock once, holds the
    reentrancy latch for its whole duration, and restores its entry snapshot
    if anything raises.
    """

    operator: str

    # Collaborators
    clock: IClock = field(default_factory=SystemClock)
    gateway: ITransferGateway = field(default_factory=InMemoryTransferGateway)
    asset_registry: IAssetRegistry | None = None

    native_asset: str = "XAI"
    address: str = ""

    # State
    custody_balance: int = 0
    schedule: VestingSchedule = field(default_factory=VestingSchedule.blank)
    ledger: AllocationLedger = field(default_factory=AllocationLedger)
    events: list[VaultEvent] = field(default_factory=list)

    _gate: LifecycleGate = field(default_factory=LifecycleGate, init=False, repr=False)
    _guard: ReentrancyGuard = field(default_factory=ReentrancyGuard, init=False, repr=False)

    def __post_init__(self) -> None:
        self.operator = self._normalize(self.operator)
        if self._is_zero(self.operator):
            raise ZeroAddress("TimelockVault: operator is zero address")
        if not self.native_asset:
            raise InvalidInput("TimelockVault: native asset cannot be empty")
        if not self.address:
            addr_input = f"timelock:{self.operator}:{self.native_asset}:{time.time()}".encode()
            addr_hash = hashlib.sha3_256(addr_input).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.address = self._normalize(self.address)

    # ==================== View Functions ====================

    @property
    def state(self) -> LifecycleState:
        return self._gate.state

    @property
    def schedule_set(self) -> bool:
        return self._gate.schedule_set

    @property
    def deposits_finalized(self) -> bool:
        return self._gate.deposits_finalized

    @property
    def total_allocated(self) -> int:
        return self.ledger.total_allocated

    @property
    def unallocated_balance(self) -> int:
        return self.custody_balance - self.ledger.total_allocated

    def account_of(self, recipient: str) -> RecipientAccount:
        return self.ledger.get(self._normalize(recipient))

    def withdrawable_of(self, recipient: str, at: int | None = None) -> int:
        """
        Amount `recipient` could withdraw at `at` (defaults to now).

        Args:
            recipient: Recipient address
            at: Optional timestamp to evaluate instead of the clock

        Returns:
            Withdrawable amount (0 before the schedule is set)
        """
        now = self.clock.now() if at is None else at
        return withdrawable_for(self.account_of(recipient), self.schedule, now)

    def vested_of(self, recipient: str, at: int | None = None) -> int:
        """Cumulative vested amount, including what has already been withdrawn."""
        now = self.clock.now() if at is None else at
        return vested_for(self.account_of(recipient), self.schedule, now)

    # ==================== Deposits & Lifecycle ====================

    def deposit(self, sender: str, amount: int) -> bool:
        """
        Receive native funds into custody. Open to anyone until finalization.

        Raises:
            DepositsClosed: If deposits are finalized
            InvalidInput: If amount is not positive
        """
        sender_norm = self._normalize(sender)
        with self._transaction("deposit") as now:
            self._gate.require(DEPOSITS_OPEN, "deposit", deposit_side=True)
            self._validate_amount(amount)

            try:
                self.custody_balance = checked_add(self.custody_balance, amount)
            except ArithmeticBoundsError as exc:
                raise InvalidInput(f"TimelockVault: deposit overflows custody: {exc}") from exc

            self._emit_transfer(sender_norm, self.address, amount, self.native_asset, now)

        vault_metrics.record_inflow(self.native_asset, amount)
        vault_metrics.update_custody_balance(self.address, self.native_asset, self.custody_balance)
        logger.info(
            "Timelock deposit",
            extra={
                "event": "timelock.deposit",
                "from": sender_norm[:10],
                "amount": amount,
                "custody_balance": self.custody_balance,
            },
        )
        return True

    def set_schedule(self, caller: str, cliff_offset: int, release_offset: int) -> VestingSchedule:
        """
        Fix the vesting edges relative to the current time. Callable once.

        Args:
            caller: Must be the operator
            cliff_offset: Signed seconds from now to the cliff edge
            release_offset: Signed seconds from now to the release edge

        Returns:
            The stored schedule

        Raises:
            Unauthorized: If caller is not the operator
            InvalidState: If the schedule is already set
            InvalidSchedule: If an offset is zero or cliff_edge >= release_edge
        """
        with self._transaction("set_schedule") as now:
            self._require_operator(caller)
            self._gate.require({LifecycleState.UNINITIALIZED}, "set_schedule")

            self.schedule = VestingSchedule.from_offsets(now, cliff_offset, release_offset)
            self._gate.advance(LifecycleState.SCHEDULE_SET)

        logger.info(
            "Timelock schedule set",
            extra={
                "event": "timelock.schedule_set",
                "initialized_at": self.schedule.initialized_at,
                "cliff_edge": self.schedule.cliff_edge,
                "release_edge": self.schedule.release_edge,
            },
        )
        return self.schedule

    def finalize_deposits(self, caller: str) -> bool:
        """
        Permanently close deposits, allocations and native sweeps.

        There is no way back: from here on the operator can no longer touch
        the custody balance and recipients are the only ones who can move it.
        """
        with self._transaction("finalize_deposits"):
            self._require_operator(caller)
            self._gate.require({LifecycleState.SCHEDULE_SET}, "finalize_deposits")
            self._gate.advance(LifecycleState.DEPOSITS_FINALIZED)

        logger.info(
            "Timelock deposits finalized",
            extra={
                "event": "timelock.finalized",
                "custody_balance": self.custody_balance,
                "total_allocated": self.total_allocated,
                "recipients": len(self.ledger),
            },
        )
        return True

    # ==================== Allocation ====================

    def allocate(self, caller: str, recipient: str, amount: int) -> RecipientAccount:
        """
        Credit `amount` to `recipient` (additive).

        Raises:
            Unauthorized: If caller is not the operator
            InvalidState: If the schedule is not set
            DepositsClosed: If deposits are finalized
            ZeroAddress: If recipient is the null address
            AmountTooSmall: If amount is below release_edge - cliff_edge
            InsufficientFunds: If custody cannot back the new allocation
        """
        with self._transaction("allocate") as now:
            self._require_operator(caller)
            self._gate.require({LifecycleState.SCHEDULE_SET}, "allocate", deposit_side=True)

            recipient_norm = self._validate_allocation(recipient, amount)
            self._require_backing(amount)
            account = self._credit(recipient_norm, amount, now)

        vault_metrics.record_allocation(self.native_asset, amount)
        return account

    def bulk_allocate(
        self,
        caller: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
    ) -> int:
        """
        Credit many recipients in one atomic call.

        Every entry is validated before any balance changes; either all
        entries are applied or none are.

        Returns:
            Total amount allocated

        Raises:
            LengthMismatch: If recipients and amounts differ in length
            (plus every error `allocate` can raise)
        """
        with self._transaction("bulk_allocate") as now:
            self._require_operator(caller)
            self._gate.require({LifecycleState.SCHEDULE_SET}, "bulk_allocate", deposit_side=True)

            if len(recipients) != len(amounts):
                raise LengthMismatch(
                    f"TimelockVault: {len(recipients)} recipients but {len(amounts)} amounts",
                    details={"recipients": len(recipients), "amounts": len(amounts)},
                )

            entries = [
                (self._validate_allocation(recipient, amount), amount)
                for recipient, amount in zip(recipients, amounts)
            ]
            batch_total = sum(amount for _, amount in entries)
            self._require_backing(batch_total)

            for recipient_norm, amount in entries:
                self._credit(recipient_norm, amount, now)

        vault_metrics.record_allocation(self.native_asset, batch_total)
        logger.info(
            "Timelock bulk allocation",
            extra={
                "event": "timelock.bulk_allocate",
                "entries": len(entries),
                "total": batch_total,
            },
        )
        return batch_total

    # ==================== Withdrawal ====================

    def withdraw(self, caller: str, recipient: str, amount: int) -> int:
        """
        Release `amount` of vested funds to `recipient`.

        State is updated before the transfer gateway is invoked, and the
        reentrancy latch stays held across the transfer, so a receiver that
        calls back into the vault is rejected with Reentrant.

        Args:
            caller: Authenticated caller; must equal recipient
            recipient: Address withdrawing its own allocation
            amount: Amount to withdraw

        Returns:
            Remaining allocated balance of recipient

        Raises:
            InvalidState: If the schedule is not set
            Unauthorized: If caller is not the recipient
            ZeroAddress: If recipient is the null address
            InvalidInput: If amount is not positive
            InsufficientFunds: If amount exceeds the allocated balance
            TooEarly: If called at or before the cliff edge
            ExceedsVested: If amount exceeds the withdrawable amount
            Reentrant: If called while another vault operation is running
        """
        with self._transaction("withdraw") as now:
            self._gate.require(SCHEDULE_READY, "withdraw")

            caller_norm = self._normalize(caller)
            recipient_norm = self._normalize(recipient)
            if caller_norm != recipient_norm:
                raise Unauthorized(
                    "TimelockVault: caller can only withdraw its own allocation",
                    details={"caller": caller_norm[:10], "recipient": recipient_norm[:10]},
                )
            self._validate_address(recipient_norm, "recipient")
            self._validate_amount(amount)

            # Checks
            account = self.ledger.get(recipient_norm)
            if amount > account.allocated:
                raise InsufficientFunds(
                    f"TimelockVault: amount exceeds allocation ({amount} > {account.allocated})",
                    details={"allocated": account.allocated, "amount": amount},
                )
            if now <= self.schedule.cliff_edge:
                raise TooEarly(
                    f"TimelockVault: cliff not reached ({now} <= {self.schedule.cliff_edge})",
                    details={"now": now, "cliff_edge": self.schedule.cliff_edge},
                )
            available = withdrawable_for(account, self.schedule, now)
            if amount > available:
                raise ExceedsVested(
                    f"TimelockVault: amount exceeds vested portion ({amount} > {available})",
                    details={"withdrawable": available, "amount": amount, "now": now},
                )
            if amount > self.custody_balance:
                raise InsufficientFunds(
                    f"TimelockVault: custody balance too low ({self.custody_balance} < {amount})"
                )

            # Effects
            updated = self.ledger.debit(recipient_norm, amount)
            self.custody_balance -= amount

            # Interactions
            self.gateway.transfer(self.native_asset, self.address, recipient_norm, amount)
            self._emit_transfer(self.address, recipient_norm, amount, self.native_asset, now)

        vault_metrics.record_outflow(self.native_asset, "withdrawal", amount)
        vault_metrics.update_custody_balance(self.address, self.native_asset, self.custody_balance)
        logger.info(
            "Timelock withdrawal",
            extra={
                "event": "timelock.withdraw",
                "recipient": recipient_norm[:10],
                "amount": amount,
                "remaining": updated.allocated,
                "withdrawn": updated.withdrawn,
            },
        )
        return updated.allocated

    # ==================== Recovery ====================

    def recover_foreign_funds(self, caller: str, asset: str, amount: int) -> bool:
        """
        Send a foreign asset held by mistake back to the operator.

        The custody asset is refused outright, and an injected asset registry
        gets the final say on whether `asset` is the custody asset.

        Raises:
            Unauthorized: If caller is not the operator
            InvalidInput: If asset is empty or is the custody asset
            InsufficientFunds: If the gateway reports the vault holds too little
        """
        with self._transaction("recover_foreign_funds") as now:
            self._require_operator(caller)
            asset = (asset or "").strip()
            if not asset:
                raise InvalidInput("TimelockVault: asset handle cannot be empty")
            if self.is_custody_asset(asset):
                raise InvalidInput(
                    "TimelockVault: cannot recover the custody asset",
                    details={"asset": asset},
                )
            self._validate_amount(amount)

            self.gateway.transfer(asset, self.address, self.operator, amount)
            self._emit_transfer(self.address, self.operator, amount, asset, now)

        vault_metrics.record_outflow(asset, "recovery", amount)
        logger.warning(
            "Timelock foreign asset recovered",
            extra={"event": "timelock.recover", "asset": asset, "amount": amount},
        )
        return True

    def emergency_sweep(self, caller: str, amount: int) -> bool:
        """
        Pull native funds back to the operator while deposits are open.

        Only the unallocated part of custody can be swept; allocations stay
        fully backed. Disabled for good once deposits are finalized.

        Raises:
            Unauthorized: If caller is not the operator
            DepositsClosed: If deposits are finalized
            InsufficientFunds: If amount exceeds custody or the unallocated balance
        """
        with self._transaction("emergency_sweep") as now:
            self._require_operator(caller)
            self._gate.require(DEPOSITS_OPEN, "emergency_sweep", deposit_side=True)
            self._validate_amount(amount)

            if amount > self.custody_balance:
                raise InsufficientFunds(
                    f"TimelockVault: sweep exceeds custody ({amount} > {self.custody_balance})",
                    details={"custody_balance": self.custody_balance, "amount": amount},
                )
            if self.custody_balance - amount < self.total_allocated:
                raise InsufficientFunds(
                    f"TimelockVault: sweep would leave allocations unbacked "
                    f"({amount} > {self.unallocated_balance})",
                    details={"unallocated": self.unallocated_balance, "amount": amount},
                )

            self.custody_balance -= amount
            self.gateway.transfer(self.native_asset, self.address, self.operator, amount)
            self._emit_transfer(self.address, self.operator, amount, self.native_asset, now)

        vault_metrics.record_outflow(self.native_asset, "sweep", amount)
        vault_metrics.update_custody_balance(self.address, self.native_asset, self.custody_balance)
        logger.warning(
            "Timelock emergency sweep",
            extra={
                "event": "timelock.sweep",
                "amount": amount,
                "custody_balance": self.custody_balance,
            },
        )
        return True

    # ==================== Helpers ====================

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[int]:
        """Hold the latch, fix one `now`, and roll back on any failure."""
        with self._guard.hold(operation):
            snapshot = self._snapshot()
            try:
                yield self.clock.now()
                self._check_backing_invariant(operation)
            except Exception as exc:
                self._restore(snapshot)
                vault_metrics.record_revert(operation, type(exc).__name__)
                logger.debug(
                    "Timelock call reverted",
                    extra={
                        "event": "timelock.revert",
                        "operation": operation,
                        "error": type(exc).__name__,
                    },
                )
                raise

    def _snapshot(self) -> _Snapshot:
        return _Snapshot(
            ledger=self.ledger.copy(),
            custody_balance=self.custody_balance,
            schedule=self.schedule,
            state=self._gate.state,
            event_count=len(self.events),
        )

    def _restore(self, snapshot: _Snapshot) -> None:
        self.ledger = snapshot.ledger
        self.custody_balance = snapshot.custody_balance
        self.schedule = snapshot.schedule
        self._gate = LifecycleGate(snapshot.state)
        del self.events[snapshot.event_count:]

    def _check_backing_invariant(self, operation: str) -> None:
        if self.custody_balance < self.ledger.total_allocated:
            raise InsufficientFunds(
                f"{operation}: custody {self.custody_balance} does not cover "
                f"allocations {self.ledger.total_allocated}"
            )

    def _require_backing(self, additional: int) -> None:
        required = self.ledger.total_allocated + additional
        if self.custody_balance < required:
            raise InsufficientFunds(
                f"TimelockVault: custody cannot back allocation ({self.custody_balance} < {required})",
                details={"custody_balance": self.custody_balance, "required": required},
            )

    def _validate_allocation(self, recipient: str, amount: int) -> str:
        recipient_norm = self._normalize(recipient)
        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)
        floor = self.schedule.duration
        if amount < floor:
            raise AmountTooSmall(
                f"TimelockVault: allocation below vesting floor ({amount} < {floor})",
                details={"amount": amount, "floor": floor},
            )
        return recipient_norm

    def _credit(self, recipient: str, amount: int, now: int) -> RecipientAccount:
        account = self.ledger.credit(recipient, amount)
        self.events.append(
            VaultEvent(
                event_type=ALLOCATION_EVENT,
                from_address=self.address,
                to_address=recipient,
                value=amount,
                asset=self.native_asset,
                timestamp=now,
            )
        )
        logger.info(
            "Timelock allocation",
            extra={
                "event": "timelock.allocate",
                "recipient": recipient[:10],
                "amount": amount,
                "allocated": account.allocated,
            },
        )
        return account

    def is_custody_asset(self, asset: str) -> bool:
        if asset.upper() == self.native_asset.upper():
            return True
        if self.asset_registry is not None:
            return bool(self.asset_registry.is_custody_asset(asset))
        return False

    def _require_operator(self, caller: str) -> None:
        if self._normalize(caller) != self.operator:
            raise Unauthorized(
                "TimelockVault: caller is not the operator",
                details={"caller": self._normalize(caller)[:10]},
            )

    def _normalize(self, address: str) -> str:
        if not isinstance(address, str):
            raise InvalidInput(f"TimelockVault: address must be a string, got {type(address).__name__}")
        return address.strip().lower()

    def _is_zero(self, address: str) -> bool:
        return not address or address == ZERO_ADDRESS

    def _validate_address(self, address: str, field_name: str) -> None:
        if self._is_zero(address):
            raise ZeroAddress(f"TimelockVault: {field_name} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidInput("TimelockVault: amount must be an integer")
        if amount <= 0:
            raise InvalidInput("TimelockVault: amount must be positive")
        if amount > UINT256_MAX:
            raise InvalidInput("TimelockVault: amount exceeds uint256")

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int, asset: str, now: int) -> None:
        self.events.append(
            VaultEvent(
                event_type=TRANSFER_EVENT,
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
                asset=asset,
                timestamp=now,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict:
        """Serialize vault state to dictionary."""
        return {
            "operator": self.operator,
            "address": self.address,
            "native_asset": self.native_asset,
            "state": self.state.name,
            "custody_balance": self.custody_balance,
            "schedule": self.schedule.to_dict(),
            "accounts": self.ledger.to_dict(),
            "events": [event.to_dict() for event in self.events],
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict,
        clock: IClock | None = None,
        gateway: ITransferGateway | None = None,
        asset_registry: IAssetRegistry | None = None,
    ) -> "TimelockVault":
        """Deserialize vault state, attaching fresh collaborators."""
        state = LifecycleState[data.get("state", LifecycleState.UNINITIALIZED.name)]
        schedule = VestingSchedule.from_dict(data.get("schedule", {}))
        if schedule.is_set != (state >= LifecycleState.SCHEDULE_SET):
            raise InvalidInput("Stored lifecycle state disagrees with stored schedule")

        native_asset = data.get("native_asset", "XAI")
        vault = cls(
            operator=data["operator"],
            clock=clock or SystemClock(),
            gateway=gateway or InMemoryTransferGateway(native_asset=native_asset),
            asset_registry=asset_registry,
            native_asset=native_asset,
            address=data.get("address", ""),
            custody_balance=int(data.get("custody_balance", 0)),
            schedule=schedule,
            ledger=AllocationLedger.from_dict(data.get("accounts", {})),
            events=[VaultEvent.from_dict(item) for item in data.get("events", [])],
        )
        vault._gate = LifecycleGate(state)
        if vault.custody_balance < vault.total_allocated:
            raise InsufficientFunds("Stored custody balance does not cover stored allocations")
        return vault
