"""
Tests for the timelock CLI.

Every test drives the click group against a state file under tmp_path and
checks the outcome by reloading that file, not by parsing rich output.
"""

import json
import logging

import pytest
from click.testing import CliRunner

from timelock.cli.main import cli
from timelock.core.clock import ManualClock
from timelock.core.contracts.lifecycle import LifecycleState
from timelock.core.vault_storage import VaultStorage

OPERATOR = "0x" + "a" * 40
ALICE = "0x" + "1" * 40
BOB = "0x" + "2" * 40


@pytest.fixture(autouse=True)
def reset_timelock_logger():
    """setup_logging binds handlers to the runner's captured streams."""
    yield
    timelock_logger = logging.getLogger("timelock")
    for handler in list(timelock_logger.handlers):
        timelock_logger.removeHandler(handler)
    timelock_logger.propagate = True


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def state_path(tmp_path):
    return str(tmp_path / "vault.json")


@pytest.fixture
def invoke(runner, state_path):
    def _invoke(*args, now=0):
        base = ["--state", state_path, "--log-level", "CRITICAL", "--now", str(now)]
        return runner.invoke(cli, base + list(args), obj={})

    return _invoke


@pytest.fixture
def scheduled(invoke):
    """Vault with 10_000 deposited and schedule cliff=100, release=1000."""
    assert invoke("init", "--operator", OPERATOR).exit_code == 0
    assert invoke("deposit", OPERATOR, "10000").exit_code == 0
    result = invoke(
        "set-schedule", "--caller", OPERATOR, "--cliff-offset", "100", "--release-offset", "1000"
    )
    assert result.exit_code == 0, result.output
    return invoke


def _reload(state_path, now=0):
    vault, gateway = VaultStorage(state_path).load(clock=ManualClock(now))
    return vault, gateway


class TestInit:
    """Tests for the init command."""

    def test_creates_state_file(self, invoke, state_path):
        result = invoke("init", "--operator", OPERATOR)

        assert result.exit_code == 0, result.output
        vault, _ = _reload(state_path)
        assert vault.operator == OPERATOR
        assert vault.state == LifecycleState.UNINITIALIZED
        assert vault.native_asset == "XAI"

    def test_refuses_to_overwrite(self, invoke, state_path):
        invoke("init", "--operator", OPERATOR)
        invoke("deposit", ALICE, "500")
        result = invoke("init", "--operator", OPERATOR)
        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.custody_balance == 500

    def test_force_overwrites(self, invoke, state_path):
        invoke("init", "--operator", OPERATOR)
        invoke("deposit", ALICE, "500")
        result = invoke("init", "--operator", OPERATOR, "--force")

        assert result.exit_code == 0
        vault, _ = _reload(state_path)
        assert vault.custody_balance == 0

    def test_rejects_zero_operator(self, invoke, state_path):
        result = invoke("init", "--operator", "0x" + "0" * 40)
        assert result.exit_code == 1
        assert not VaultStorage(state_path).exists()

    def test_json_output(self, runner, state_path):
        result = runner.invoke(
            cli,
            ["--state", state_path, "--log-level", "CRITICAL", "--json-output", "init", "--operator", OPERATOR],
            obj={},
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["operator"] == OPERATOR
        assert payload["native_asset"] == "XAI"


class TestLifecycleCommands:
    """Deposits, schedule and finalization through the CLI."""

    def test_missing_state_file(self, invoke):
        result = invoke("deposit", ALICE, "100")
        assert result.exit_code == 1
        assert "No vault state" in result.output

    def test_schedule_is_relative_to_now(self, invoke, state_path):
        invoke("init", "--operator", OPERATOR)
        result = invoke(
            "set-schedule", "--caller", OPERATOR, "--cliff-offset", "100", "--release-offset", "1000", now=5000
        )

        assert result.exit_code == 0, result.output
        vault, _ = _reload(state_path, now=5000)
        assert vault.schedule.cliff_edge == 5100
        assert vault.schedule.release_edge == 6000

    def test_backdated_schedule(self, invoke, state_path):
        invoke("init", "--operator", OPERATOR)
        result = invoke(
            "set-schedule",
            "--caller",
            OPERATOR,
            "--cliff-offset=-100",
            "--release-offset=1000",
            now=5000,
        )

        assert result.exit_code == 0, result.output
        vault, _ = _reload(state_path, now=5000)
        assert vault.schedule.cliff_edge == 4900

    def test_invalid_schedule_leaves_state_untouched(self, invoke, state_path):
        invoke("init", "--operator", OPERATOR)
        result = invoke(
            "set-schedule", "--caller", OPERATOR, "--cliff-offset", "1000", "--release-offset", "100"
        )

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert not vault.schedule_set

    def test_finalize_twice_fails(self, scheduled, state_path):
        assert scheduled("finalize", "--caller", OPERATOR).exit_code == 0
        result = scheduled("finalize", "--caller", OPERATOR)

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.state == LifecycleState.DEPOSITS_FINALIZED

    def test_deposit_after_finalize_fails(self, scheduled, state_path):
        scheduled("finalize", "--caller", OPERATOR)
        result = scheduled("deposit", ALICE, "1")

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.custody_balance == 10_000


class TestAllocationCommands:
    """allocate and bulk-allocate."""

    def test_allocate(self, scheduled, state_path):
        result = scheduled("allocate", "--caller", OPERATOR, ALICE, "1000")

        assert result.exit_code == 0, result.output
        vault, _ = _reload(state_path)
        assert vault.account_of(ALICE).allocated == 1000

    def test_allocate_below_floor(self, scheduled, state_path):
        result = scheduled("allocate", "--caller", OPERATOR, ALICE, "899")

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.total_allocated == 0

    def test_bulk_allocate_from_csv(self, scheduled, state_path, tmp_path):
        csv_file = tmp_path / "allocations.csv"
        csv_file.write_text(f"# recipient,amount\n{ALICE},1000\n{BOB},2500\n", encoding="utf-8")

        result = scheduled("bulk-allocate", "--caller", OPERATOR, str(csv_file))

        assert result.exit_code == 0, result.output
        vault, _ = _reload(state_path)
        assert vault.account_of(ALICE).allocated == 1000
        assert vault.account_of(BOB).allocated == 2500

    def test_bulk_allocate_malformed_row(self, scheduled, state_path, tmp_path):
        csv_file = tmp_path / "allocations.csv"
        csv_file.write_text(f"{ALICE},1000,extra\n", encoding="utf-8")

        result = scheduled("bulk-allocate", "--caller", OPERATOR, str(csv_file))

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.total_allocated == 0

    def test_bulk_allocate_is_atomic(self, scheduled, state_path, tmp_path):
        csv_file = tmp_path / "allocations.csv"
        csv_file.write_text(f"{ALICE},1000\n{BOB},10\n", encoding="utf-8")

        result = scheduled("bulk-allocate", "--caller", OPERATOR, str(csv_file))

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.account_of(ALICE).allocated == 0


class TestWithdrawCommands:
    """withdraw and account views."""

    def test_withdraw_half_way(self, scheduled, state_path):
        scheduled("allocate", "--caller", OPERATOR, ALICE, "1000")
        result = scheduled("withdraw", "--caller", ALICE, ALICE, "500", now=550)

        assert result.exit_code == 0, result.output
        vault, gateway = _reload(state_path, now=550)
        assert vault.account_of(ALICE).allocated == 500
        assert vault.account_of(ALICE).withdrawn == 500
        assert vault.custody_balance == 9500
        assert gateway.balance_of("XAI", ALICE) == 500

    def test_withdraw_before_cliff(self, scheduled, state_path):
        scheduled("allocate", "--caller", OPERATOR, ALICE, "1000")
        result = scheduled("withdraw", "--caller", ALICE, ALICE, "1", now=100)

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.account_of(ALICE).withdrawn == 0

    def test_withdraw_for_someone_else(self, scheduled):
        scheduled("allocate", "--caller", OPERATOR, ALICE, "1000")
        result = scheduled("withdraw", "--caller", BOB, ALICE, "100", now=550)
        assert result.exit_code == 1

    def test_account_json(self, scheduled, runner, state_path):
        scheduled("allocate", "--caller", OPERATOR, ALICE, "1000")
        result = runner.invoke(
            cli,
            ["--state", state_path, "--log-level", "CRITICAL", "--now", "550", "--json-output", "account", ALICE],
            obj={},
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["allocated"] == 1000
        assert payload["withdrawable"] == 500
        assert payload["vested"] == 500
        assert payload["now"] == 550

    def test_status_json(self, scheduled, runner, state_path):
        scheduled("allocate", "--caller", OPERATOR, ALICE, "1000")
        result = runner.invoke(
            cli,
            ["--state", state_path, "--log-level", "CRITICAL", "--now", "0", "--json-output", "status"],
            obj={},
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["state"] == "SCHEDULE_SET"
        assert payload["custody_balance"] == 10_000
        assert payload["total_allocated"] == 1000
        assert payload["unallocated"] == 9000
        assert payload["cliff_edge"] == 100
        assert payload["release_edge"] == 1000

    def test_status_renders_table(self, scheduled):
        result = scheduled("status")
        assert result.exit_code == 0
        assert "Vault Status" in result.output


class TestRecoveryCommands:
    """foreign-deposit, recover and sweep."""

    def test_recover_foreign_asset(self, scheduled, state_path):
        assert scheduled("foreign-deposit", "USDC", "300").exit_code == 0
        result = scheduled("recover", "--caller", OPERATOR, "USDC", "200")

        assert result.exit_code == 0, result.output
        vault, gateway = _reload(state_path)
        assert gateway.balance_of("USDC", OPERATOR) == 200
        assert gateway.balance_of("USDC", vault.address) == 100

    def test_recover_custody_asset_refused(self, scheduled, state_path):
        result = scheduled("recover", "--caller", OPERATOR, "xai", "1")

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.custody_balance == 10_000

    def test_foreign_deposit_of_custody_asset_refused(self, scheduled):
        result = scheduled("foreign-deposit", "XAI", "1")
        assert result.exit_code == 1

    def test_sweep(self, scheduled, state_path):
        scheduled("allocate", "--caller", OPERATOR, ALICE, "1000")
        result = scheduled("sweep", "--caller", OPERATOR, "9000")

        assert result.exit_code == 0, result.output
        vault, gateway = _reload(state_path)
        assert vault.custody_balance == 1000
        assert gateway.balance_of("XAI", OPERATOR) == 9000

    def test_sweep_after_finalize_fails(self, scheduled, state_path):
        scheduled("finalize", "--caller", OPERATOR)
        result = scheduled("sweep", "--caller", OPERATOR, "1")

        assert result.exit_code == 1
        vault, _ = _reload(state_path)
        assert vault.custody_balance == 10_000
