"""Domain error kinds.  The API layer maps each one to an HTTP status."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for failures a caller can act on."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(DomainError):
    """Input passed schema validation but breaks a business rule."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFound(DomainError):
    pass


class AccessDenied(DomainError):
    pass


class Conflict(DomainError):
    pass


class InvalidStateTransition(Conflict):
    """Raised when a booking status change violates the state machine."""


class AccountLocked(DomainError):
    pass


class UpstreamFailure(DomainError):
    """An outbound collaborator (mail relay, payment gateway) failed."""


class AuthenticationFailed(DomainError):
    """Missing, invalid or expired credentials."""
