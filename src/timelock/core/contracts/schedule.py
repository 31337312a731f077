"""
Vesting schedule: the three epoch values fixed once by the operator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from ..exceptions import InvalidSchedule, InvalidState
from ..safe_math import ArithmeticBoundsError, checked_add_signed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VestingSchedule:
    """
    Immutable schedule edges.

    A blank schedule (`is_set=False`) has all edges at zero. The only way to
    obtain a set schedule is `VestingSchedule.from_offsets`, which enforces
    cliff_edge < release_edge.
    """

    initialized_at: int = 0
    cliff_edge: int = 0
    release_edge: int = 0
    is_set: bool = False

    @classmethod
    def blank(cls) -> "VestingSchedule":
        return cls()

    @classmethod
    def from_offsets(cls, now: int, cliff_offset: int, release_offset: int) -> "VestingSchedule":
        """
        Build a schedule from signed offsets relative to `now`.

        Negative offsets place the edges in the past, which is how backdated
        schedules are created.

        Raises:
            InvalidSchedule: If an offset is zero, an edge falls outside the
                timestamp range, or cliff_edge >= release_edge
        """
        if not isinstance(cliff_offset, int) or not isinstance(release_offset, int):
            raise InvalidSchedule("Schedule offsets must be integers")
        if cliff_offset == 0 or release_offset == 0:
            raise InvalidSchedule(
                "Schedule offsets must be non-zero",
                details={"cliff_offset": cliff_offset, "release_offset": release_offset},
            )

        try:
            cliff_edge = checked_add_signed(now, cliff_offset)
            release_edge = checked_add_signed(now, release_offset)
        except ArithmeticBoundsError as exc:
            raise InvalidSchedule(f"Schedule edge out of range: {exc}") from exc

        if cliff_edge >= release_edge:
            raise InvalidSchedule(
                f"Cliff edge must precede release edge ({cliff_edge} >= {release_edge})",
                details={"cliff_edge": cliff_edge, "release_edge": release_edge},
            )

        return cls(
            initialized_at=now,
            cliff_edge=cliff_edge,
            release_edge=release_edge,
            is_set=True,
        )

    @property
    def duration(self) -> int:
        """Length of the linear release window; also the allocation floor."""
        if not self.is_set:
            raise InvalidState("Schedule has not been set")
        return self.release_edge - self.cliff_edge

    def to_dict(self) -> Dict:
        return {
            "initialized_at": self.initialized_at,
            "cliff_edge": self.cliff_edge,
            "release_edge": self.release_edge,
            "is_set": self.is_set,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "VestingSchedule":
        if not data.get("is_set", False):
            return cls.blank()
        schedule = cls(
            initialized_at=int(data["initialized_at"]),
            cliff_edge=int(data["cliff_edge"]),
            release_edge=int(data["release_edge"]),
            is_set=True,
        )
        if schedule.cliff_edge >= schedule.release_edge:
            raise InvalidSchedule("Stored schedule has cliff edge at or after release edge")
        return schedule
