"""Standardized exception hierarchy for the ride-hailing service."""

from typing import Any


class RideHailError(Exception):
    """Base exception for all ride-hailing errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(RideHailError):
    """Errors that may succeed if the caller tries again."""

    pass


class ConflictError(TransientError):
    """A concurrent write won the race for the same record."""

    pass


class ExternalServiceError(TransientError):
    """Payment processor or another collaborator failed or was unreachable.

    Local state stays pending; reconciliation is safe to repeat.
    """

    pass


class ProcessorUnavailableError(ExternalServiceError):
    """Processor timed out, refused the connection or answered 5xx."""

    pass


class PermanentError(RideHailError):
    """Errors that will not succeed on retry."""

    pass


class ValidationError(PermanentError):
    """Missing or malformed input."""

    pass


class NotFoundError(PermanentError):
    """Requested ride, account, payment or message does not exist."""

    pass


class GuardViolationError(PermanentError):
    """State machine precondition failed."""

    pass


class AuthorizationError(PermanentError):
    """Role or ownership mismatch."""

    pass


class AuthenticationError(PermanentError):
    """Missing, expired or invalid credentials."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass
