"""
Linear vesting with a cliff.

Pure functions: no clock reads, no state. Everything is integer arithmetic so
results are exact for any uint256 allocation.

    t <= cliff_edge                  -> nothing withdrawable
    cliff_edge < t <= release_edge   -> total * (t - cliff) // (release - cliff) - withdrawn
    t > release_edge                 -> all remaining principal

`total` is the recipient's lifetime allocation (allocated + withdrawn), so the
curve is measured against everything ever allocated rather than a snapshot
taken at allocation time.
"""

from __future__ import annotations

from ..safe_math import mul_div
from .ledger import RecipientAccount
from .schedule import VestingSchedule


def vested_amount(
    total: int,
    cliff_edge: int,
    release_edge: int,
    now: int,
) -> int:
    """Cumulative amount of `total` unlocked at `now`."""
    if now <= cliff_edge:
        return 0
    if now >= release_edge:
        return total
    return mul_div(total, now - cliff_edge, release_edge - cliff_edge)


def withdrawable_amount(
    allocated: int,
    withdrawn: int,
    cliff_edge: int,
    release_edge: int,
    now: int,
) -> int:
    """
    Amount a recipient may withdraw at `now`.

    Args:
        allocated: Unwithdrawn principal
        withdrawn: Cumulative amount already released
        cliff_edge: Timestamp at or before which nothing vests
        release_edge: Timestamp after which everything is vested
        now: Current timestamp

    Returns:
        Withdrawable amount, never negative and never above `allocated`
    """
    if now <= cliff_edge:
        return 0
    if now > release_edge:
        return allocated

    vested = vested_amount(allocated + withdrawn, cliff_edge, release_edge, now)
    # vested can trail withdrawn when allocations were added after earlier
    # withdrawals were computed against a smaller total
    return min(max(vested - withdrawn, 0), allocated)


def withdrawable_for(account: RecipientAccount, schedule: VestingSchedule, now: int) -> int:
    if not schedule.is_set:
        return 0
    return withdrawable_amount(
        account.allocated,
        account.withdrawn,
        schedule.cliff_edge,
        schedule.release_edge,
        now,
    )


def vested_for(account: RecipientAccount, schedule: VestingSchedule, now: int) -> int:
    if not schedule.is_set:
        return 0
    if now > schedule.release_edge:
        return account.lifetime_total
    return vested_amount(
        account.lifetime_total,
        schedule.cliff_edge,
        schedule.release_edge,
        now,
    )
