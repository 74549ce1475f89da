"""
Geyser-specific exception hierarchy.

Every public geyser operation is all-or-nothing: any of these exceptions aborts
the operation and rolls back its effects. Messages are human readable and
stable, callers and tests match on them.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class GeyserError(Exception):
    """Base exception for all geyser errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether resubmitting with corrected inputs/state can succeed
    """

    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Validation Errors ====================


class InputValidationError(GeyserError):
    """Raised for zero/negative amounts, withdrawals above the caller's
    balance and other malformed inputs."""
    pass


class ConfigurationError(InputValidationError):
    """Raised when geyser construction parameters are invalid."""
    recoverable = False


class PrecisionError(InputValidationError):
    """Raised when a nonzero token amount converts to zero shares.

    Guards against share-rounding manipulation with dust amounts.
    """
    pass


# ==================== Authorization Errors ====================


class AuthorizationError(GeyserError):
    """Raised when a caller without the required role attempts a restricted operation."""
    pass


# ==================== State Errors ====================


class StateError(GeyserError):
    """Raised when the geyser is not in a state that permits the operation.

    Examples: staking token unset, distribution not started, schedule starting
    before the global start time, re-setting an already-set configuration.
    """
    pass


class CapacityError(StateError):
    """Raised when the maximum number of concurrent unlock schedules is reached."""
    pass


# ==================== Token Errors ====================


class TokenError(GeyserError):
    """Raised by token collaborators when a transfer, approval or rebase fails."""
    pass


# ==================== Utility Functions ====================


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, GeyserError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    return context
