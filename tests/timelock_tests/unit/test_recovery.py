"""
Tests for foreign-asset recovery, emergency sweeps and deposits.
"""

import pytest

from timelock.core.exceptions import (
    DepositsClosed,
    InsufficientFunds,
    InvalidInput,
    Unauthorized,
)

OPERATOR = "0x" + "a" * 40
ALICE = "0x" + "1" * 40
STRANGER = "0x" + "9" * 40


class WrappedAssetRegistry:
    """Registry that also treats a wrapped handle as the custody asset."""

    def is_custody_asset(self, asset):
        return asset.upper() in {"XAI", "WXAI"}


class TestDeposit:
    """Tests for TimelockVault.deposit."""

    def test_anyone_can_deposit(self, vault):
        vault.deposit(STRANGER, 500)
        vault.deposit(OPERATOR, 700)

        assert vault.custody_balance == 1200
        assert [e.from_address for e in vault.events] == [STRANGER, OPERATOR]
        assert all(e.to_address == vault.address for e in vault.events)

    @pytest.mark.parametrize("amount", [0, -10, 1.5])
    def test_rejects_invalid_amount(self, vault, amount):
        with pytest.raises(InvalidInput):
            vault.deposit(ALICE, amount)
        assert vault.custody_balance == 0
        assert vault.events == []

    def test_rejects_custody_overflow(self, vault):
        vault.deposit(ALICE, 2**256 - 1)
        with pytest.raises(InvalidInput, match="overflows"):
            vault.deposit(ALICE, 1)
        assert vault.custody_balance == 2**256 - 1


class TestRecoverForeignFunds:
    """Tests for TimelockVault.recover_foreign_funds."""

    def test_returns_foreign_asset_to_operator(self, scheduled_vault, gateway):
        gateway.credit("USDC", scheduled_vault.address, 300)

        scheduled_vault.recover_foreign_funds(OPERATOR, "USDC", 200)

        assert gateway.balance_of("USDC", OPERATOR) == 200
        assert gateway.balance_of("USDC", scheduled_vault.address) == 100
        assert scheduled_vault.custody_balance == 10_000
        event = scheduled_vault.events[-1]
        assert event.asset == "USDC"
        assert event.to_address == OPERATOR

    @pytest.mark.parametrize("asset", ["XAI", "xai", " XAI "])
    def test_refuses_custody_asset(self, scheduled_vault, asset):
        with pytest.raises(InvalidInput, match="custody asset"):
            scheduled_vault.recover_foreign_funds(OPERATOR, asset, 1)
        assert scheduled_vault.custody_balance == 10_000

    def test_registry_has_final_say(self, scheduled_vault, gateway):
        scheduled_vault.asset_registry = WrappedAssetRegistry()
        gateway.credit("WXAI", scheduled_vault.address, 50)

        with pytest.raises(InvalidInput):
            scheduled_vault.recover_foreign_funds(OPERATOR, "WXAI", 50)
        assert gateway.balance_of("WXAI", scheduled_vault.address) == 50

    def test_rejects_empty_asset(self, scheduled_vault):
        with pytest.raises(InvalidInput):
            scheduled_vault.recover_foreign_funds(OPERATOR, "", 1)

    def test_only_operator(self, scheduled_vault, gateway):
        gateway.credit("USDC", scheduled_vault.address, 300)
        with pytest.raises(Unauthorized):
            scheduled_vault.recover_foreign_funds(STRANGER, "USDC", 300)

    def test_insufficient_foreign_balance(self, scheduled_vault, gateway):
        gateway.credit("USDC", scheduled_vault.address, 10)
        events_before = list(scheduled_vault.events)

        with pytest.raises(InsufficientFunds):
            scheduled_vault.recover_foreign_funds(OPERATOR, "USDC", 11)
        assert scheduled_vault.events == events_before

    def test_available_after_finalization(self, scheduled_vault, gateway):
        scheduled_vault.finalize_deposits(OPERATOR)
        gateway.credit("USDC", scheduled_vault.address, 5)
        scheduled_vault.recover_foreign_funds(OPERATOR, "USDC", 5)
        assert gateway.balance_of("USDC", OPERATOR) == 5


class TestEmergencySweep:
    """Tests for TimelockVault.emergency_sweep."""

    def test_sweeps_before_schedule(self, vault, gateway):
        vault.deposit(OPERATOR, 1000)
        vault.emergency_sweep(OPERATOR, 400)

        assert vault.custody_balance == 600
        assert gateway.balance_of("XAI", OPERATOR) == 400

    def test_sweeps_unallocated_funds(self, scheduled_vault):
        scheduled_vault.allocate(OPERATOR, ALICE, 1000)
        scheduled_vault.emergency_sweep(OPERATOR, 9000)

        assert scheduled_vault.custody_balance == 1000
        assert scheduled_vault.unallocated_balance == 0

    def test_cannot_sweep_allocated_funds(self, scheduled_vault):
        scheduled_vault.allocate(OPERATOR, ALICE, 1000)
        with pytest.raises(InsufficientFunds, match="unbacked"):
            scheduled_vault.emergency_sweep(OPERATOR, 9001)
        assert scheduled_vault.custody_balance == 10_000

    def test_cannot_exceed_custody(self, scheduled_vault):
        with pytest.raises(InsufficientFunds, match="exceeds custody"):
            scheduled_vault.emergency_sweep(OPERATOR, 10_001)

    def test_only_operator(self, scheduled_vault):
        with pytest.raises(Unauthorized):
            scheduled_vault.emergency_sweep(STRANGER, 1)

    def test_disabled_after_finalization(self, scheduled_vault):
        scheduled_vault.finalize_deposits(OPERATOR)
        with pytest.raises(DepositsClosed):
            scheduled_vault.emergency_sweep(OPERATOR, 1)
        assert scheduled_vault.custody_balance == 10_000
