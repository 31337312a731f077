"""
Single-slot reentrancy latch.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from ..exceptions import Reentrant

logger = logging.getLogger(__name__)


class ReentrancyGuard:
    """
    Boolean latch held for the full duration of a mutating operation.

    Calls are serialized by the host, so the latch never arbitrates real
    parallelism. It only stops a callback fired during an outgoing transfer
    from entering the vault again before the outer operation returns.
    """

    def __init__(self) -> None:
        self._locked = False
        self._holder: str | None = None

    @property
    def locked(self) -> bool:
        return self._locked

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        if self._locked:
            logger.warning(
                "Reentrant call rejected",
                extra={
                    "event": "timelock.reentrancy_blocked",
                    "operation": operation,
                    "held_by": self._holder,
                },
            )
            raise Reentrant(
                f"{operation}: reentrant call while {self._holder} is in progress",
                details={"operation": operation, "held_by": self._holder},
            )
        self._locked = True
        self._holder = operation
        try:
            yield
        finally:
            self._locked = False
            self._holder = None
