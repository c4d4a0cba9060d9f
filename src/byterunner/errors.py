"""Domain exceptions.

Every error a user can see carries a machine-checkable ``kind`` and a
human-readable ``reason``. The global handler in
``byterunner.middleware.error_handler`` renders them as
``{"detail": reason, "kind": kind}`` with the class's HTTP status.
"""

from __future__ import annotations


class ByteRunnerError(Exception):
    """Base class for errors surfaced to API callers."""

    kind: str = "error"
    status_code: int = 400

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ValidationError(ByteRunnerError):
    """Malformed or out-of-range input."""

    kind = "validation_error"
    status_code = 400


class UsernameRequired(ValidationError):
    """The user must pick a display name before submitting scores."""

    kind = "username_required"


class BelowMinimum(ValidationError):
    """Withdrawal amount below the configured minimum."""

    kind = "below_minimum"


class AuthenticationError(ByteRunnerError):
    """Missing, expired or mismatched credentials."""

    kind = "authentication_error"
    status_code = 401


class InvalidToken(AuthenticationError):
    """Run token failed signature/expiry checks or belongs to another user."""

    kind = "invalid_token"


class RateExceeded(ByteRunnerError):
    """Score or distance is physically implausible for the run duration."""

    kind = "rate_exceeded"
    status_code = 422


class NotEligible(ByteRunnerError):
    """Fraud or velocity gate rejected the request."""

    kind = "not_eligible"
    status_code = 403


class InsufficientBalance(ByteRunnerError):
    kind = "insufficient_balance"
    status_code = 409


class NotFound(ByteRunnerError):
    kind = "not_found"
    status_code = 404


class DuplicateEntry(ByteRunnerError):
    kind = "duplicate_entry"
    status_code = 409


class InvalidTransition(ByteRunnerError):
    """Requested status change is not allowed from the current status."""

    kind = "invalid_transition"
    status_code = 409


class LedgerWriteFailed(ByteRunnerError):
    """A balance-affecting write failed and was rolled back."""

    kind = "ledger_write_failed"
    status_code = 503
