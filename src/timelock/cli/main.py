#!/usr/bin/env python3
"""
Timelock Vault CLI - operate a vault stored in a local JSON state file.

Every command loads the state file, runs one vault operation as `--caller`,
and writes the result back. `--now` pins the clock to a fixed timestamp for
replays and demos; without it the system clock is used.
"""

from __future__ import annotations

import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from timelock.core import config
from timelock.core.clock import ManualClock, SystemClock
from timelock.core.contracts.timelock_vault import TimelockVault
from timelock.core.exceptions import InvalidInput, StorageError, TimelockError
from timelock.core.logging_config import setup_logging
from timelock.core.transfer_gateway import InMemoryTransferGateway, StaticAssetRegistry
from timelock.core.vault_storage import VaultStorage

logger = logging.getLogger(__name__)
console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, extra={"event": "cli.error", "error": type(exc).__name__})
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _load(ctx: click.Context) -> TimelockVault:
    storage: VaultStorage = ctx.obj["storage"]
    vault, _ = storage.load(clock=ctx.obj["clock"])
    return vault


def _save(ctx: click.Context, vault: TimelockVault) -> None:
    ctx.obj["storage"].save(vault)


def _emit(ctx: click.Context, payload: dict[str, Any], title: str) -> None:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(show_header=False, box=box.ROUNDED)
    for key, value in payload.items():
        table.add_row(f"[bold cyan]{key}", str(value))
    console.print(Panel(table, title=f"[bold green]{title}", border_style="green"))


def _run(ctx: click.Context, title: str, operation) -> None:
    """Load, apply `operation(vault)`, persist, and print its payload."""
    try:
        vault = _load(ctx)
        payload = operation(vault)
        _save(ctx, vault)
    except (TimelockError, ValueError) as exc:
        _cli_fail(exc)
        return
    _emit(ctx, payload, title)


@click.group()
@click.option(
    "--state",
    "state_path",
    default=config.STATE_PATH,
    envvar="TIMELOCK_STATE_PATH",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Vault state file",
)
@click.option("--now", type=click.IntRange(min=0), default=None, help="Pin the clock to this Unix timestamp")
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option(
    "--log-level",
    default=config.LOG_LEVEL,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    show_default=True,
)
@click.pass_context
def cli(ctx: click.Context, state_path: str, now: int | None, json_output: bool, log_level: str):
    """Timelock vault: custodial linear vesting with a cliff."""
    ctx.ensure_object(dict)
    setup_logging(
        name="timelock",
        log_file=config.LOG_FILE,
        level=log_level,
        environment=config.ENVIRONMENT,
    )
    ctx.obj["storage"] = VaultStorage(state_path)
    ctx.obj["clock"] = ManualClock(now) if now is not None else SystemClock()
    ctx.obj["json_output"] = json_output


@cli.command("init")
@click.option("--operator", required=True, help="Operator address")
@click.option("--native-asset", default=config.NATIVE_ASSET, show_default=True)
@click.option("--force", is_flag=True, help="Overwrite an existing state file")
@click.pass_context
def init_vault(ctx: click.Context, operator: str, native_asset: str, force: bool):
    """Create an empty vault owned by OPERATOR."""
    storage: VaultStorage = ctx.obj["storage"]
    try:
        if storage.exists() and not force:
            raise StorageError(f"State file {storage.storage_path} already exists (use --force)")
        vault = TimelockVault(
            operator=operator,
            clock=ctx.obj["clock"],
            gateway=InMemoryTransferGateway(native_asset=native_asset),
            asset_registry=StaticAssetRegistry(native_asset),
            native_asset=native_asset,
        )
        storage.save(vault)
    except TimelockError as exc:
        _cli_fail(exc)
        return
    _emit(
        ctx,
        {"address": vault.address, "operator": vault.operator, "native_asset": vault.native_asset},
        "Vault Created",
    )


@cli.command("deposit")
@click.argument("sender")
@click.argument("amount", type=int)
@click.pass_context
def deposit(ctx: click.Context, sender: str, amount: int):
    """Deposit AMOUNT native units from SENDER."""
    def operation(vault: TimelockVault) -> dict[str, Any]:
        vault.deposit(sender, amount)
        return {"deposited": amount, "custody_balance": vault.custody_balance}

    _run(ctx, "Deposit", operation)


@cli.command("foreign-deposit")
@click.argument("asset")
@click.argument("amount", type=int)
@click.pass_context
def foreign_deposit(ctx: click.Context, asset: str, amount: int):
    """Record AMOUNT of a foreign ASSET sent to the vault address."""
    def operation(vault: TimelockVault) -> dict[str, Any]:
        if vault.is_custody_asset(asset):
            raise InvalidInput("Use `deposit` for the custody asset")
        vault.gateway.credit(asset, vault.address, amount)
        return {"asset": asset, "held": vault.gateway.balance_of(asset, vault.address)}

    _run(ctx, "Foreign Asset Received", operation)


@cli.command("set-schedule")
@click.option("--caller", required=True)
@click.option("--cliff-offset", required=True, type=int, help="Signed seconds from now to the cliff")
@click.option("--release-offset", required=True, type=int, help="Signed seconds from now to full release")
@click.pass_context
def set_schedule(ctx: click.Context, caller: str, cliff_offset: int, release_offset: int):
    """Fix the vesting schedule (once)."""
    def operation(vault: TimelockVault) -> dict[str, Any]:
        return vault.set_schedule(caller, cliff_offset, release_offset).to_dict()

    _run(ctx, "Schedule Set", operation)


@cli.command("finalize")
@click.option("--caller", required=True)
@click.pass_context
def finalize(ctx: click.Context, caller: str):
    """Permanently close deposits and allocations."""
    def operation(vault: TimelockVault) -> dict[str, Any]:
        vault.finalize_deposits(caller)
        return {"state": vault.state.name, "custody_balance": vault.custody_balance}

    _run(ctx, "Deposits Finalized", operation)


@cli.command("allocate")
@click.option("--caller", required=True)
@click.argument("recipient")
@click.argument("amount", type=int)
@click.pass_context
def allocate(ctx: click.Context, caller: str, recipient: str, amount: int):
    """Allocate AMOUNT to RECIPIENT."""
    def operation(vault: TimelockVault) -> dict[str, Any]:
        account = vault.allocate(caller, recipient, amount)
        return {"recipient": recipient.lower(), "allocated": account.allocated}

    _run(ctx, "Allocation", operation)


@cli.command("bulk-allocate")
@click.option("--caller", required=True)
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def bulk_allocate(ctx: click.Context, caller: str, csv_file: Path):
    """Allocate from a CSV of `recipient,amount` rows."""
    recipients: list[str] = []
    amounts: list[int] = []
    try:
        with csv_file.open(newline="", encoding="utf-8") as handle:
            for line_no, row in enumerate(csv.reader(handle), start=1):
                if not row or row[0].startswith("#"):
                    continue
                if len(row) != 2:
                    raise InvalidInput(f"{csv_file}:{line_no}: expected `recipient,amount`")
                recipients.append(row[0].strip())
                amounts.append(int(row[1]))
    except (OSError, ValueError, TimelockError) as exc:
        _cli_fail(exc)
        return

    def operation(vault: TimelockVault) -> dict[str, Any]:
        total = vault.bulk_allocate(caller, recipients, amounts)
        return {"entries": len(recipients), "total": total}

    _run(ctx, "Bulk Allocation", operation)


@cli.command("withdraw")
@click.option("--caller", required=True)
@click.argument("recipient")
@click.argument("amount", type=int)
@click.pass_context
def withdraw(ctx: click.Context, caller: str, recipient: str, amount: int):
    """Withdraw AMOUNT of vested funds to RECIPIENT."""
    def operation(vault: TimelockVault) -> dict[str, Any]:
        remaining = vault.withdraw(caller, recipient, amount)
        account = vault.account_of(recipient)
        return {"withdrawn": amount, "remaining": remaining, "total_withdrawn": account.withdrawn}

    _run(ctx, "Withdrawal", operation)


@cli.command("recover")
@click.option("--caller", required=True)
@click.argument("asset")
@click.argument("amount", type=int)
@click.pass_context
def recover(ctx: click.Context, caller: str, asset: str, amount: int):
    """Return AMOUNT of a foreign ASSET to the operator."""
    def operation(vault: TimelockVault) -> dict[str, Any]:
        vault.recover_foreign_funds(caller, asset, amount)
        return {"asset": asset, "recovered": amount}

    _run(ctx, "Foreign Funds Recovered", operation)


@cli.command("sweep")
@click.option("--caller", required=True)
@click.argument("amount", type=int)
@click.pass_context
def sweep(ctx: click.Context, caller: str, amount: int):
    """Sweep unallocated native funds to the operator (before finalization)."""
    def operation(vault: TimelockVault) -> dict[str, Any]:
        vault.emergency_sweep(caller, amount)
        return {"swept": amount, "custody_balance": vault.custody_balance}

    _run(ctx, "Emergency Sweep", operation)


@cli.command("status")
@click.pass_context
def status(ctx: click.Context):
    """Show lifecycle state, schedule and totals."""
    try:
        vault = _load(ctx)
    except TimelockError as exc:
        _cli_fail(exc)
        return

    payload = {
        "address": vault.address,
        "operator": vault.operator,
        "state": vault.state.name,
        "custody_balance": vault.custody_balance,
        "total_allocated": vault.total_allocated,
        "unallocated": vault.unallocated_balance,
        "recipients": len(vault.ledger),
    }
    if vault.schedule_set:
        payload["cliff_edge"] = vault.schedule.cliff_edge
        payload["release_edge"] = vault.schedule.release_edge
    _emit(ctx, payload, "Vault Status")


@cli.command("account")
@click.argument("recipient")
@click.pass_context
def account(ctx: click.Context, recipient: str):
    """Show RECIPIENT's allocation and what is withdrawable now."""
    try:
        vault = _load(ctx)
        now = vault.clock.now()
        entry = vault.account_of(recipient)
        payload = {
            "recipient": recipient.lower(),
            "allocated": entry.allocated,
            "withdrawn": entry.withdrawn,
            "vested": vault.vested_of(recipient, at=now),
            "withdrawable": vault.withdrawable_of(recipient, at=now),
            "now": now,
        }
    except (TimelockError, ValueError) as exc:
        _cli_fail(exc)
        return
    _emit(ctx, payload, "Account")


def main() -> int:
    cli(obj={})
    return 0


if __name__ == "__main__":
    sys.exit(main())
