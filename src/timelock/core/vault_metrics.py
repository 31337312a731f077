"""
Timelock vault instrumentation.

Prometheus metrics for custody flows and rejected calls. The helpers are
called after a vault operation has committed (or reverted) and never raise
into the vault.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

vault_inflow_counter = Counter(
    "timelock_vault_inflow_total", "Native units deposited into vault custody", ["asset"]
)

vault_outflow_counter = Counter(
    "timelock_vault_outflow_total",
    "Units transferred out of the vault",
    ["asset", "kind"],
)

vault_allocation_counter = Counter(
    "timelock_vault_allocated_total", "Units allocated to recipients", ["asset"]
)

vault_revert_counter = Counter(
    "timelock_vault_reverts_total",
    "Vault calls rejected and rolled back",
    ["operation", "error"],
)

custody_balance_gauge = Gauge(
    "timelock_vault_custody_balance", "Current vault custody balance", ["vault", "asset"]
)


def record_inflow(asset: str, amount: int) -> None:
    if amount <= 0:
        return
    vault_inflow_counter.labels(asset=asset).inc(amount)


def record_outflow(asset: str, kind: str, amount: int) -> None:
    """kind is one of: withdrawal, sweep, recovery."""
    if amount <= 0:
        return
    vault_outflow_counter.labels(asset=asset, kind=kind).inc(amount)


def record_allocation(asset: str, amount: int) -> None:
    if amount <= 0:
        return
    vault_allocation_counter.labels(asset=asset).inc(amount)


def record_revert(operation: str, error: str) -> None:
    vault_revert_counter.labels(operation=operation, error=error).inc()


def update_custody_balance(vault_address: str, asset: str, balance: int) -> None:
    custody_balance_gauge.labels(vault=vault_address, asset=asset).set(balance)
