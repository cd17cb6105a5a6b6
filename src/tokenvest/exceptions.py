"""
Vesting-specific exception hierarchy for tokenvest.

Every rejected ledger operation raises one of these typed exceptions so
callers can tell precondition failures apart from custodian failures and
from broken ledger invariants.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VestingError(Exception):
    """Base exception for all vesting ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    recoverable = False

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


# ==================== Precondition Errors ====================


class InvalidAmountError(VestingError):
    """Raised when an amount is not a positive integer."""
    pass


class InvalidScheduleError(VestingError):
    """Raised when a schedule request has an empty beneficiary or a bad start time."""
    pass


class DuplicateScheduleError(VestingError):
    """Raised when a beneficiary already has a vesting schedule."""
    pass


class InsufficientFundsError(VestingError):
    """Raised when an amount exceeds the ledger's withdrawable funds."""
    pass


class UnauthorizedError(VestingError):
    """Raised when the caller is neither the owner nor the schedule's beneficiary."""
    pass


class ScheduleNotFoundError(VestingError):
    """Raised when an operation targets a beneficiary without a schedule."""
    pass


class AlreadyReleasedError(VestingError):
    """Raised when a schedule has already been released."""
    pass


class TooEarlyError(VestingError):
    """Raised when a release is attempted before the vesting date."""
    recoverable = True  # Succeeds once the cliff has passed


class ReentrantCallError(VestingError):
    """Raised when a mutating call re-enters the ledger during a transfer."""
    pass


# ==================== Custodian Errors ====================


class TransferFailedError(VestingError):
    """Raised when the custodian refuses or fails to move funds."""
    pass


class TokenError(VestingError):
    """Raised by the in-memory fungible token on invalid operations."""
    pass


# ==================== Consistency Errors ====================


class LedgerInvariantError(VestingError):
    """Raised when ledger accounting no longer matches custodian holdings.

    This is fatal: a correctly operating ledger never commits more funds
    than it holds.
    """
    pass


class ConfigurationError(VestingError):
    """Raised when environment configuration is missing or invalid."""
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

    if isinstance(exc, VestingError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    return context
