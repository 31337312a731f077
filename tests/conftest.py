"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Add src to Python path so tests run without an editable install
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(src_path))

import pytest

from timelock.core.clock import ManualClock
from timelock.core.contracts.timelock_vault import TimelockVault
from timelock.core.transfer_gateway import InMemoryTransferGateway, StaticAssetRegistry

OPERATOR = "0x" + "a" * 40
ALICE = "0x" + "1" * 40
BOB = "0x" + "2" * 40
CAROL = "0x" + "3" * 40
STRANGER = "0x" + "9" * 40


@pytest.fixture
def clock():
    """Manual clock starting at t=0"""
    return ManualClock(0)


@pytest.fixture
def gateway():
    return InMemoryTransferGateway(native_asset="XAI")


@pytest.fixture
def vault(clock, gateway):
    """Fresh vault in UNINITIALIZED state"""
    return TimelockVault(
        operator=OPERATOR,
        clock=clock,
        gateway=gateway,
        asset_registry=StaticAssetRegistry("XAI"),
        native_asset="XAI",
    )


@pytest.fixture
def scheduled_vault(vault):
    """Vault with cliff at t=100, release at t=1000 and 10_000 units in custody"""
    vault.deposit(OPERATOR, 10_000)
    vault.set_schedule(OPERATOR, 100, 1000)
    return vault
