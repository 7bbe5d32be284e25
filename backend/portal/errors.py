# Overview: Domain error taxonomy shared by services and routes.

"""
Error taxonomy for the request lifecycle core.

HTTP mapping used by the route layer:
    ValidationError        -> 400
    PermissionDeniedError  -> 403
    NotFoundError          -> 404
    InvalidTransition      -> 409 (retryable: reload and try again)
    StorageError           -> 500 (generic failure, nothing half-written)
    NotificationError      -> never surfaced, logged by the dispatcher
"""


class PortalError(Exception):
    """Base class for domain errors."""


class ValidationError(PortalError, ValueError):
    """400-level input problem (empty cart, missing field, bad quantity)."""


class PermissionDeniedError(PortalError):
    """Actor's role may not perform the operation."""


class NotFoundError(PortalError, LookupError):
    """Referenced Request / Item / Profile does not exist (or is outside the actor's scope)."""


class InvalidTransition(PortalError):
    """
    Illegal or stale status change.

    Raised both for transitions the state machine forbids and for
    conditional writes that lost a race against another actor.
    """

    def __init__(self, message: str, *, current_status: str | None = None):
        super().__init__(message)
        self.current_status = current_status


class StorageError(PortalError):
    """Underlying store unavailable or a write failed; the operation did not commit."""


class NotificationError(PortalError):
    """A notification could not be delivered. Logged, never raised to the actor."""
