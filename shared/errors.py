"""
Shared error handling for the Media Lifecycle API.

Every error rendered to a client has the shape ``{"error": {"message": ...}}``.
``details`` are kept on the exception for logging only and are never echoed,
and neither is the message of a 5xx error.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


INTERNAL_ERROR_MESSAGE = "Internal server error"


class ErrorBody(BaseModel):
    """Inner error payload."""

    message: str


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: ErrorBody


class AccessLayerException(Exception):
    """Base exception for the service layer."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response; server-side failures get a generic message."""
        message = self.message if self.status_code < 500 else INTERNAL_ERROR_MESSAGE
        return ErrorResponse(error=ErrorBody(message=message))


class ValidationError(AccessLayerException):
    """Caller input is malformed or missing."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class AuthenticationError(AccessLayerException):
    """Credential missing, invalid or expired."""

    status_code = 401

    def __init__(self, message: str = "Invalid or expired token", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class MissingTokenError(AuthenticationError):
    """No bearer value was presented."""

    def __init__(self, message: str = "Authorization token missing", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class MalformedTokenError(AuthenticationError):
    """Token could not be parsed far enough to pick a signing key."""


class KeyNotFoundError(AuthenticationError):
    """The issuer's key set has no key with the token's key id."""


class AuthorizationError(AccessLayerException):
    """Authenticated, but lacking the required privilege."""

    status_code = 403

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class NotFoundError(AccessLayerException):
    """Requested record does not exist for the caller."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class DependencyError(AccessLayerException):
    """A backing service (store, object store, discovery endpoint) failed or timed out."""

    status_code = 500

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        self.service = service
        super().__init__("DEPENDENCY_ERROR", f"{service}: {message}", details)
