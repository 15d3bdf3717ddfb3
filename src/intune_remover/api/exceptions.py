#!/usr/bin/env python3
"""Exception Hierarchy for the Intune / Autopilot Device Remover.

This module provides a structured exception hierarchy for every failure the
remover can encounter: configuration, input validation, authentication,
Graph API responses and the network underneath them.

Design Principles:
    - All exceptions inherit from RemoverError
    - Exceptions preserve context (original error, timestamps, details)
    - Only pre-condition failures (auth, validation, configuration) abort a
      batch; everything else is converted into a per-device record status

Exception Hierarchy:
    RemoverError (base)
    ├── ConfigurationError (unrecoverable - fix settings)
    ├── ValidationError (unrecoverable - fix input)
    ├── AuthenticationError (fatal to the batch)
    │   ├── TokenFetchError
    │   └── InvalidCredentialsError
    ├── APIError
    │   ├── TokenExpiredError
    │   ├── BadRequestError
    │   ├── NotFoundError
    │   ├── RateLimitError
    │   └── ServerError
    ├── NetworkError
    │   ├── ConnectionError
    │   └── TimeoutError
    └── RemovalError (recorded, never raised past a serial)
        ├── QueryError
        └── DeleteError
"""
from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================

class RemoverError(Exception):
    """Base exception for all remover errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "INVALID_CREDENTIALS")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether a later attempt could plausibly succeed
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.insert(0, f"[{self.code}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Pre-condition Errors (abort the batch)
# ============================================

class ConfigurationError(RemoverError):
    """Raised when settings are missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ValidationError(RemoverError):
    """Raised when caller input is malformed or incomplete.

    Covers missing connection fields, missing spreadsheet columns, empty
    serial lists and blank serials.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details=details,
            recoverable=False,
            **kwargs,
        )
        self.field = field


# ============================================
# Authentication Errors
# ============================================

class AuthenticationError(RemoverError):
    """Base class for token acquisition failures. Fatal to a batch."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, **kwargs)


class TokenFetchError(AuthenticationError):
    """Raised when the token endpoint cannot be reached or answers badly."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if status_code:
            details["status_code"] = status_code
        super().__init__(
            message,
            code="TOKEN_FETCH_ERROR",
            details=details,
            **kwargs,
        )
        self.status_code = status_code


class InvalidCredentialsError(AuthenticationError):
    """Raised when the tenant rejects the client credentials."""

    def __init__(
        self,
        message: str = "Invalid client credentials",
        **kwargs,
    ):
        super().__init__(
            message,
            code="INVALID_CREDENTIALS",
            **kwargs,
        )


# ============================================
# API Errors
# ============================================

class APIError(RemoverError):
    """Base class for Graph API response errors.

    Attributes:
        status_code: HTTP status code
        endpoint: API endpoint that was called
        response_body: Raw response body (may be truncated)
        api_message: Message extracted from the Graph error payload
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        endpoint: Optional[str] = None,
        response_body: Optional[str] = None,
        method: str = "GET",
        api_message: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint
        if method:
            details["method"] = method
        if response_body:
            details["response_body"] = response_body[:500]

        kwargs.setdefault("recoverable", status_code in (429, 500, 502, 503, 504))
        kwargs.setdefault("code", f"API_ERROR_{status_code}")

        super().__init__(
            message,
            details=details,
            **kwargs,
        )
        self.status_code = status_code
        self.endpoint = endpoint
        self.response_body = response_body
        self.method = method
        self.api_message = api_message


class TokenExpiredError(APIError):
    """Raised when Graph answers 401. The batch token is never refreshed."""

    def __init__(self, message: str = "Access token expired or invalid", **kwargs):
        kwargs.setdefault("status_code", 401)
        super().__init__(message, code="TOKEN_EXPIRED", recoverable=False, **kwargs)


class BadRequestError(APIError):
    """Raised when Graph rejects a request (HTTP 400/422)."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("status_code", 400)
        super().__init__(message, code="BAD_REQUEST", recoverable=False, **kwargs)


class NotFoundError(APIError):
    """Raised when requested resource is not found (HTTP 404)."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        message = f"{resource_type} not found"
        if resource_id:
            message = f"{resource_type} '{resource_id}' not found"

        kwargs.setdefault("status_code", 404)
        details = kwargs.pop("details", {})
        details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message,
            code="NOT_FOUND",
            details=details,
            recoverable=False,
            **kwargs,
        )


class RateLimitError(APIError):
    """Raised when Graph throttles a request (HTTP 429).

    Attributes:
        retry_after: Seconds Graph asked us to wait (informational only)
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        kwargs.setdefault("status_code", 429)
        details = kwargs.pop("details", {})
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            message,
            code="RATE_LIMIT_EXCEEDED",
            details=details,
            **kwargs,
        )
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when Graph returns a 5xx error."""

    def __init__(self, message: str = "Server error", **kwargs):
        kwargs.setdefault("status_code", 500)
        super().__init__(
            message,
            code="SERVER_ERROR",
            recoverable=True,
            **kwargs,
        )


# ============================================
# Network Errors
# ============================================

class NetworkError(RemoverError):
    """Base class for network-related errors."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class ConnectionError(NetworkError):
    """Raised when connection to server fails."""

    def __init__(
        self,
        message: str = "Failed to connect to server",
        host: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if host:
            details["host"] = host
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details=details,
            **kwargs,
        )


class TimeoutError(NetworkError):
    """Raised when request times out."""

    def __init__(
        self,
        message: str = "Request timed out",
        timeout_seconds: Optional[float] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if timeout_seconds:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(
            message,
            code="TIMEOUT_ERROR",
            details=details,
            **kwargs,
        )


# ============================================
# Removal Errors (converted to record statuses)
# ============================================

class RemovalError(RemoverError):
    """Base class for failures inside the per-serial workflow.

    Attributes:
        serial: Serial number being processed
        registry: Registry name ("Intune" or "Autopilot")
    """

    def __init__(
        self,
        message: str,
        serial: str,
        registry: str,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["serial"] = serial
        details["registry"] = registry
        super().__init__(message, details=details, **kwargs)
        self.serial = serial
        self.registry = registry


class QueryError(RemovalError):
    """Raised when a registry lookup for a serial fails."""

    def __init__(self, message: str, serial: str, registry: str, **kwargs):
        super().__init__(message, serial, registry, code="QUERY_ERROR", **kwargs)


class DeleteError(RemovalError):
    """Raised when deleting a single matched device fails."""

    def __init__(
        self,
        message: str,
        serial: str,
        registry: str,
        device_id: str,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["device_id"] = device_id
        super().__init__(
            message, serial, registry, code="DELETE_ERROR", details=details, **kwargs
        )
        self.device_id = device_id


def describe_error(error: BaseException) -> str:
    """Return the most useful human-readable message for an error.

    Graph errors carry the message from the response payload, which is what
    an operator wants to see in the result file. Other remover errors fall
    back to their plain message rather than the decorated ``str()`` form.
    """
    if isinstance(error, APIError) and error.api_message:
        return error.api_message
    if isinstance(error, RemovalError) and error.cause is not None:
        return describe_error(error.cause)
    if isinstance(error, RemoverError):
        return error.message
    return str(error) or error.__class__.__name__


# ============================================
# Exports
# ============================================

__all__ = [
    # Base
    "RemoverError",
    # Pre-conditions
    "ConfigurationError",
    "ValidationError",
    # Authentication
    "AuthenticationError",
    "TokenFetchError",
    "InvalidCredentialsError",
    # API
    "APIError",
    "TokenExpiredError",
    "BadRequestError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    # Network
    "NetworkError",
    "ConnectionError",
    "TimeoutError",
    # Removal
    "RemovalError",
    "QueryError",
    "DeleteError",
    # Utilities
    "describe_error",
]
