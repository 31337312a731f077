"""
Timelock vault exception hierarchy.

Every rejection raised by the vault is a subclass of TimelockError so callers
can catch the whole family at the boundary while tests assert on the precise
type. All failures are terminal for the call that raised them: the vault
restores its entry snapshot before the exception propagates.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TimelockError(Exception):
    """Base exception for all timelock vault errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried unchanged
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": dict(self.details),
            "recoverable": self.recoverable,
        }


# ==================== Authorization ====================


class Unauthorized(TimelockError):
    """Raised when a non-operator calls an operator-only operation, or a
    caller tries to withdraw on behalf of another recipient."""
    pass


# ==================== Lifecycle ====================


class InvalidState(TimelockError):
    """Raised when an operation is called in the wrong lifecycle phase."""

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.current_state = current_state
        if current_state is not None:
            self.details.setdefault("state", current_state)


class DepositsClosed(InvalidState):
    """Raised by deposit and allocation operations after finalization."""
    pass


class InvalidSchedule(TimelockError):
    """Raised for a zero offset, an out-of-range edge, or cliff >= release."""
    pass


# ==================== Input Validation ====================


class InvalidInput(TimelockError):
    """Raised when call arguments fail validation."""
    pass


class ZeroAddress(InvalidInput):
    """Raised when a recipient is the null identity."""
    pass


class LengthMismatch(InvalidInput):
    """Raised when bulk allocation arrays differ in length."""
    pass


class AmountTooSmall(InvalidInput):
    """Raised when an allocation is below the vesting-window floor."""
    pass


# ==================== Funds ====================


class InsufficientFunds(TimelockError):
    """Raised when custody or an allocated balance cannot cover an amount."""
    pass


class TooEarly(TimelockError):
    """Raised for withdrawals at or before the cliff edge."""
    pass


class ExceedsVested(TimelockError):
    """Raised when a withdrawal exceeds the currently unlocked portion."""
    pass


# ==================== Execution ====================


class Reentrant(TimelockError):
    """Raised when a mutating operation is entered while the guard is held."""
    pass


class StorageError(TimelockError):
    """Raised when vault state cannot be persisted or loaded."""
    pass
