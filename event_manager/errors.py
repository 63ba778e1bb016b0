"""Error taxonomy shared by the services and the API surface.

Services raise these deliberately; ``event_manager.main`` maps each one to
its HTTP status. ``TransientDeliveryError`` is the exception: it stays inside
the notification dispatcher and never reaches a request handler.
"""
from typing import Optional


class EventManagerError(Exception):
    """Base class for all deliberate application errors."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(EventManagerError):
    status_code = 400
    default_message = "Invalid input"


class AuthenticationError(EventManagerError):
    status_code = 401
    default_message = "Could not validate credentials"


class InvalidCredentialsError(AuthenticationError):
    """Bad email/password on login; reported as a client error."""

    status_code = 400
    default_message = "Invalid credentials"


class AuthorizationError(EventManagerError):
    status_code = 403
    default_message = "Not permitted"


class NotFoundError(EventManagerError):
    status_code = 404
    default_message = "Not found"


class ConflictError(EventManagerError):
    status_code = 400
    default_message = "Resource already exists"


class TransientDeliveryError(EventManagerError):
    """A single mail-send attempt failed; the dispatcher may retry it."""

    default_message = "Mail delivery failed"


class InternalError(EventManagerError):
    """The store failed in a way the request cannot recover from."""

    status_code = 500
    default_message = "Server error"
