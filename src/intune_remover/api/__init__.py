"""Microsoft Graph API modules.

This package provides the transport layer used by the removal workflow.

Classes:
    TokenManager: OAuth2 client credentials token acquisition (one per batch)
    GraphClient: Async HTTP client with typed errors and nextLink pagination
    ConcurrencyLimiter: Bounded concurrent task runner with ordered results

Functions:
    escape_odata_string: Escape a value for an OData string literal
    contains_filter: Build a ``contains()`` filter expression
    days_until_secret_expiry: Days left on the app registration's secret
    sanitize_error_message: Strip tokens and secrets from error text

Exceptions:
    RemoverError: Base exception for all remover errors
    ConfigurationError / ValidationError: Pre-condition failures
    AuthenticationError: Token acquisition failures
    APIError / NetworkError: Graph transport failures
    QueryError / DeleteError: Per-serial workflow failures
"""
from .applications import days_until_secret_expiry
from .auth import CachedToken, TokenManager
from .client import GraphClient, contains_filter, escape_odata_string
from .concurrency import ConcurrencyLimiter
from .error_sanitizer import ErrorSanitizer, sanitize_error_message
from .exceptions import (
    APIError,
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    ConnectionError,
    DeleteError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    QueryError,
    RateLimitError,
    RemovalError,
    RemoverError,
    ServerError,
    TimeoutError,
    TokenExpiredError,
    TokenFetchError,
    ValidationError,
    describe_error,
)

__all__ = [
    # Auth
    "TokenManager",
    "CachedToken",
    # Client
    "GraphClient",
    "escape_odata_string",
    "contains_filter",
    # Concurrency
    "ConcurrencyLimiter",
    # Applications
    "days_until_secret_expiry",
    # Sanitization
    "ErrorSanitizer",
    "sanitize_error_message",
    # Exceptions
    "RemoverError",
    "ConfigurationError",
    "ValidationError",
    "AuthenticationError",
    "TokenFetchError",
    "InvalidCredentialsError",
    "APIError",
    "TokenExpiredError",
    "BadRequestError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    "RemovalError",
    "QueryError",
    "DeleteError",
    "describe_error",
]
