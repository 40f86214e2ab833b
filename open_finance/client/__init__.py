"""HTTP client module for the Open Finance API."""

from open_finance.client.http_client import HTTPClient
from open_finance.client.exceptions import (
    OpenFinanceError,
    HTTPClientError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    RateLimitError,
    ServerError,
    NoResponseError,
    TimeoutError,
    ConnectionError,
    SetupError,
    ConfigurationError,
    CertificateError,
    create_http_error,
)

__all__ = [
    "HTTPClient",
    "OpenFinanceError",
    "HTTPClientError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    "ServerError",
    "NoResponseError",
    "TimeoutError",
    "ConnectionError",
    "SetupError",
    "ConfigurationError",
    "CertificateError",
    "create_http_error",
]
