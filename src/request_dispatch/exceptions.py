"""Custom exceptions for the request dispatch layer.

Every failure a caller can observe from the dispatcher is a `DispatchError`
subclass carrying a stable `ErrorCode`, so call sites can branch on the kind
of failure without comparing message strings:

    try:
        await dispatcher.get("/contacts")
    except DispatchError as exc:
        if exc.is_code(ErrorCode.NOT_FOUND):
            ...
"""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar


class ErrorCode(StrEnum):
    """Closed set of error kinds surfaced by the dispatcher."""

    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    AUTHORIZATION_ERROR = "AUTHORIZATION_ERROR"
    NOT_FOUND_ERROR = "NOT_FOUND_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    SERVER_ERROR = "SERVER_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_RESPONSE = "UNKNOWN_RESPONSE"


class DispatchError(Exception):
    """Base exception for all dispatch errors.

    Subclasses set class-level defaults; a remote error body of shape
    ``{"message", "code", "details"}`` may override them per instance.
    """

    default_message: ClassVar[str] = "An unexpected error occurred"
    default_status_code: ClassVar[int] = 0
    default_code: ClassVar[str] = ErrorCode.UNKNOWN_RESPONSE

    # Seconds from a server Retry-After header, when one was sent.
    retry_after: float | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: object = None,
    ) -> None:
        self.message = message or self.default_message
        self.status_code = self.default_status_code if status_code is None else status_code
        self.code = code or str(self.default_code)
        self.details = details
        super().__init__(self.message)

    def to_json(self) -> dict[str, object]:
        """Return a JSON-serialisable view of the error."""
        return {
            "name": type(self).__name__,
            "message": self.message,
            "statusCode": self.status_code,
            "code": self.code,
            "details": self.details,
        }

    def is_code(self, code: str) -> bool:
        """Return True when this error carries the given code."""
        return self.code == code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, code={self.code!r})"


class NetworkError(DispatchError):
    """Raised when the transport failed before any HTTP response arrived."""

    default_message = "Network error occurred"
    default_status_code = 0
    default_code = ErrorCode.NETWORK_ERROR


class RequestTimeoutError(DispatchError):
    """Raised when an attempt exceeded its deadline."""

    default_message = "Request timed out"
    default_status_code = 408
    default_code = ErrorCode.TIMEOUT_ERROR


class RequestValidationError(DispatchError):
    """Raised for malformed requests before anything is transmitted."""

    default_message = "Validation error"
    default_status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR


class ClientError(DispatchError):
    """Raised for 4xx responses without a more specific kind."""

    default_message = "Request failed"
    default_status_code = 400
    default_code = ErrorCode.CLIENT_ERROR


class AuthenticationError(ClientError):
    """Raised when the remote API returns 401 Unauthorized."""

    default_message = "Authentication required"
    default_status_code = 401
    default_code = ErrorCode.AUTHENTICATION_ERROR


class AuthorizationError(ClientError):
    """Raised when the remote API returns 403 Forbidden."""

    default_message = "Not authorized to perform this action"
    default_status_code = 403
    default_code = ErrorCode.AUTHORIZATION_ERROR


class NotFoundError(ClientError):
    """Raised when the remote API returns 404 Not Found."""

    default_message = "Resource not found"
    default_status_code = 404
    default_code = ErrorCode.NOT_FOUND_ERROR


class RateLimitError(ClientError):
    """Raised on a remote 429 or when the local limiter refuses a request.

    `retry_after` is the number of seconds the caller should wait, when known.
    """

    default_message = "Rate limit exceeded"
    default_status_code = 429
    default_code = ErrorCode.RATE_LIMIT_ERROR

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after: float | None = None,
        status_code: int | None = None,
        code: str | None = None,
        details: object = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(
            message,
            status_code=status_code,
            code=code,
            details={"retryAfter": retry_after} if details is None else details,
        )


class CircuitBreakerOpen(DispatchError):
    """Raised when an endpoint is isolated after repeated failures.

    No network attempt is made while the circuit is open.
    """

    default_message = "Circuit breaker is open"
    default_status_code = 503
    default_code = ErrorCode.CIRCUIT_OPEN

    def __init__(self, endpoint: str, failure_count: int, threshold: int) -> None:
        self.endpoint = endpoint
        self.failure_count = failure_count
        self.threshold = threshold
        super().__init__(
            f"Circuit breaker is open for {endpoint}: {failure_count} consecutive failures "
            f"(threshold: {threshold})",
            details={"endpoint": endpoint, "failureCount": failure_count, "threshold": threshold},
        )


class ServerError(DispatchError):
    """Raised when the remote API returns a 5xx response."""

    default_message = "Internal server error"
    default_status_code = 500
    default_code = ErrorCode.SERVER_ERROR


class ServiceUnavailableError(ServerError):
    """Raised when the remote API returns 503 Service Unavailable."""

    default_message = "Service temporarily unavailable"
    default_status_code = 503
    default_code = ErrorCode.SERVICE_UNAVAILABLE


class UnknownResponseError(DispatchError):
    """Raised when a successful response body could not be decoded."""

    default_message = "Response body could not be parsed"
    default_status_code = 0
    default_code = ErrorCode.UNKNOWN_RESPONSE


class ConfigFileNotFoundError(FileNotFoundError):
    """Raised when a dispatch config file path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(ValueError):
    """Raised when a dispatch config file is not valid TOML."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Config file {path} could not be parsed: {reason}")


class ConfigFileValidationError(ValueError):
    """Raised when a dispatch config file fails schema validation."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Config file {path} is invalid: {reason}")
