"""Custom exceptions for the Open Finance client.

Failures fall into three families:

- ``HTTPClientError``: the server answered with an error status.
- ``NoResponseError``: the request was sent but no response arrived.
- ``SetupError``: something local went wrong before a request could be sent.
"""

from typing import Optional, Dict, Any


class OpenFinanceError(Exception):
    """Base exception for all Open Finance client errors."""
    pass


class HTTPClientError(OpenFinanceError):
    """Base class for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}
        self.request_id = request_id


class ValidationError(HTTPClientError):
    """Raised when request validation fails (400)."""
    pass


class AuthenticationError(HTTPClientError):
    """Raised when authentication fails (401)."""
    pass


class AuthorizationError(HTTPClientError):
    """Raised when authorization fails (403)."""
    pass


class NotFoundError(HTTPClientError):
    """Raised when resource is not found (404)."""
    pass


class ConflictError(HTTPClientError):
    """Raised on conflicting state, e.g. a reused idempotency key (409)."""
    pass


class RateLimitError(HTTPClientError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServerError(HTTPClientError):
    """Raised when server returns 5xx error."""
    pass


class NoResponseError(OpenFinanceError):
    """Raised when a request was sent but no response was received."""
    pass


class TimeoutError(NoResponseError):
    """Raised when request times out."""
    pass


class ConnectionError(NoResponseError):
    """Raised when connection fails."""
    pass


class SetupError(OpenFinanceError):
    """Raised for local errors that happen before a request is sent."""
    pass


class ConfigurationError(SetupError):
    """Raised when a required setting is missing or invalid."""
    pass


class CertificateError(SetupError):
    """Raised when a TPP certificate or key cannot be read or loaded."""
    pass


def create_http_error(
    status_code: int,
    message: str,
    response_data: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None
) -> HTTPClientError:
    """Create appropriate HTTP error based on status code."""

    error_classes = {
        400: ValidationError,
        401: AuthenticationError,
        403: AuthorizationError,
        404: NotFoundError,
        409: ConflictError,
        429: RateLimitError,
    }

    if status_code in error_classes:
        return error_classes[status_code](
            message=message,
            status_code=status_code,
            response_data=response_data,
            request_id=request_id
        )
    elif 500 <= status_code < 600:
        return ServerError(
            message=message,
            status_code=status_code,
            response_data=response_data,
            request_id=request_id
        )
    else:
        return HTTPClientError(
            message=message,
            status_code=status_code,
            response_data=response_data,
            request_id=request_id
        )
