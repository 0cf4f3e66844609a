"""Domain errors raised by the ledger and services.

Each error maps to one HTTP status and a short machine-readable reason;
the global handler in ``predik.middleware.error_handler`` renders them.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for expected, user-visible failures."""

    status_code: int = 400
    reason: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(LedgerError):
    status_code = 404
    reason = "not_found"


class ValidationError(LedgerError):
    status_code = 400
    reason = "validation_error"


class ConflictError(LedgerError):
    status_code = 409
    reason = "conflict"


class UnauthorizedError(LedgerError):
    status_code = 401
    reason = "unauthorized"


class CooldownActiveError(LedgerError):
    status_code = 429
    reason = "cooldown_active"

    def __init__(self, hours_remaining: int) -> None:
        super().__init__(f"Task cooldown period active. Available again in {hours_remaining} hours.")
        self.hours_remaining = hours_remaining


class DuplicateCompletionError(ConflictError):
    """A (user, task) completion row already exists.

    Raised by stores when the uniqueness constraint rejects an insert.
    """
