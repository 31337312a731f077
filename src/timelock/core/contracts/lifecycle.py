"""
Lifecycle gate for the timelock vault.

The vault moves through three phases in a strict forward order:

    UNINITIALIZED -> SCHEDULE_SET -> DEPOSITS_FINALIZED

Each operation names the phases it is legal in and the gate rejects
everything else, so no operation inspects raw boolean flags.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Iterable

from ..exceptions import DepositsClosed, InvalidState

logger = logging.getLogger(__name__)


class LifecycleState(IntEnum):
    UNINITIALIZED = 0
    SCHEDULE_SET = 1
    DEPOSITS_FINALIZED = 2


DEPOSITS_OPEN = frozenset({LifecycleState.UNINITIALIZED, LifecycleState.SCHEDULE_SET})
SCHEDULE_READY = frozenset({LifecycleState.SCHEDULE_SET, LifecycleState.DEPOSITS_FINALIZED})


class LifecycleGate:
    """Holds the current phase and enforces one-step forward transitions."""

    def __init__(self, state: LifecycleState = LifecycleState.UNINITIALIZED):
        self._state = LifecycleState(state)

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def schedule_set(self) -> bool:
        return self._state >= LifecycleState.SCHEDULE_SET

    @property
    def deposits_finalized(self) -> bool:
        return self._state == LifecycleState.DEPOSITS_FINALIZED

    def require(
        self,
        allowed: Iterable[LifecycleState],
        operation: str,
        deposit_side: bool = False,
    ) -> None:
        """
        Reject `operation` unless the current phase is in `allowed`.

        Deposit-side operations called after finalization raise DepositsClosed
        so callers can tell a permanently closed vault from a not-yet-ready one.
        """
        if self._state in frozenset(allowed):
            return

        if deposit_side and self._state == LifecycleState.DEPOSITS_FINALIZED:
            raise DepositsClosed(
                f"{operation}: deposits are finalized",
                current_state=self._state.name,
            )

        if self._state == LifecycleState.UNINITIALIZED:
            reason = "schedule not set"
        elif self._state == LifecycleState.SCHEDULE_SET:
            reason = "schedule already set"
        else:
            reason = "deposits already finalized"
        raise InvalidState(f"{operation}: {reason}", current_state=self._state.name)

    def advance(self, target: LifecycleState) -> None:
        if target != self._state + 1:
            raise InvalidState(
                f"Illegal lifecycle transition {self._state.name} -> {target.name}",
                current_state=self._state.name,
            )
        previous = self._state
        self._state = target
        logger.info(
            "Lifecycle transition",
            extra={
                "event": "timelock.lifecycle",
                "from": previous.name,
                "to": target.name,
            },
        )
