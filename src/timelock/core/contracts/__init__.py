"""
Timelock Vault Contracts.

This module provides the vault contract and its building blocks:
- TimelockVault: custodial vault with schedule, allocation and withdrawal
- VestingSchedule: cliff and release edges fixed once by the operator
- AllocationLedger: per-recipient allocated/withdrawn accounting
- LifecycleGate: forward-only phase machine guarding every operation
- ReentrancyGuard: single-slot latch around mutating calls
- vesting: pure withdrawable-amount calculator
"""

from .ledger import AllocationLedger, RecipientAccount
from .lifecycle import LifecycleGate, LifecycleState
from .reentrancy import ReentrancyGuard
from .schedule import VestingSchedule
from .timelock_vault import ZERO_ADDRESS, TimelockVault, VaultEvent
from .vesting import vested_amount, withdrawable_amount

__all__ = [
    # Contract
    "TimelockVault",
    "VaultEvent",
    "ZERO_ADDRESS",
    # Building blocks
    "VestingSchedule",
    "AllocationLedger",
    "RecipientAccount",
    "LifecycleGate",
    "LifecycleState",
    "ReentrancyGuard",
    # Calculator
    "vested_amount",
    "withdrawable_amount",
]
