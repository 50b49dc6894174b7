# Overview: Error taxonomy shared by services and routes.

"""
Domain errors.

Services raise these; the app-level handler in create_app() turns them into
the {"status": "error", "message": ...} envelope with the class status code.
"""

from __future__ import annotations


class CreditDeskError(Exception):
    """Base class. `status_code` maps the error onto an HTTP response."""

    status_code = 500
    public_message: str | None = None

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def client_message(self) -> str:
        return self.public_message or self.message


class ValidationError(CreditDeskError, ValueError):
    """400-level input problem."""

    status_code = 400


class AuthError(CreditDeskError):
    """Missing, invalid, expired or revoked credential."""

    status_code = 401


class NotFoundError(CreditDeskError):
    """Referenced agency or receipt does not exist (or is not eligible)."""

    status_code = 404


class ConflictError(CreditDeskError):
    """409-level business rule conflict (e.g. voiding a void receipt)."""

    status_code = 409


class RetryableConflict(ConflictError):
    """
    A uniqueness collision the caller may resolve by regenerating and retrying,
    e.g. two receipts drawing the same random number suffix.
    """


class StorageError(CreditDeskError):
    """Persistence failure. Clients only ever see the generic message."""

    status_code = 500
    public_message = "A storage error occurred. Please try again."
