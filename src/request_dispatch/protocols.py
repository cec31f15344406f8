"""Protocol definitions for dependency injection.

These protocols define the abstract interfaces the dispatcher depends on,
enabling isolated unit testing with fake implementations (see tests/fakes).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from .types import (
    CircuitStatus,
    DispatchRequest,
    DispatchResponse,
    Operation,
    RateLimitConfig,
    RateLimitInfo,
    RequestMetrics,
    TransportResponse,
)


@runtime_checkable
class Clock(Protocol):
    """Source of time for every timed decision in the dispatcher."""

    def monotonic(self) -> float:
        """Return a monotonic timestamp in seconds."""
        ...

    def time(self) -> float:
        """Return wall-clock seconds since the epoch (for metrics)."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the current task for `seconds`."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Abstract transport performing a single HTTP exchange."""

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout_seconds: float | None,
    ) -> TransportResponse:
        """Send one request and return the raw response.

        Raises:
            requests.Timeout: When the transport's own deadline expires.
            requests.RequestException: On connection-level failures.
        """
        ...

    def close(self) -> None:
        """Release connections held by the transport."""
        ...


@runtime_checkable
class ResponseCache(Protocol):
    """Abstract TTL cache for successful responses."""

    def get(self, key: str) -> object | None:
        """Return the live cached value for `key`, or None."""
        ...

    def set(self, key: str, data: object, ttl_seconds: float | None = None) -> None:
        """Store `data` under `key` for `ttl_seconds`."""
        ...

    def has(self, key: str) -> bool:
        """Return True when a live entry exists for `key`."""
        ...

    def delete(self, key: str) -> None:
        """Remove `key` if present."""
        ...

    def clear(self) -> None:
        """Remove every entry."""
        ...

    def sweep(self) -> int:
        """Delete expired entries; return how many were removed."""
        ...


@runtime_checkable
class RateLimiter(Protocol):
    """Abstract per-endpoint rate limiter."""

    async def execute(
        self,
        endpoint: str,
        operation: Operation,
        config: RateLimitConfig | None = None,
    ) -> object:
        """Run `operation` now, or once the endpoint's window permits it."""
        ...

    def rate_limit_info(self, endpoint: str) -> RateLimitInfo | None:
        """Return remaining capacity for the endpoint's live window."""
        ...

    async def aclose(self) -> None:
        """Stop background work and reject queued requests."""
        ...


@runtime_checkable
class CircuitBreaker(Protocol):
    """Abstract per-endpoint circuit breaker."""

    def check(self, endpoint: str) -> None:
        """Raise if the endpoint's circuit rejects new calls."""
        ...

    def acquire(self, endpoint: str) -> None:
        """Claim permission for a network attempt; raise if refused."""
        ...

    def release(self, endpoint: str) -> None:
        """Return a claim that ended without a network outcome."""
        ...

    def record_success(self, endpoint: str) -> None:
        """Record a successful call."""
        ...

    def record_failure(self, endpoint: str) -> None:
        """Record a failed call."""
        ...

    def status(self, endpoint: str) -> CircuitStatus:
        """Return the endpoint's current status."""
        ...

    def sweep(self) -> list[str]:
        """Half-open every cooled-down circuit; return their endpoints."""
        ...


@runtime_checkable
class RetryPolicy(Protocol):
    """Abstract retry policy for transient failures."""

    max_retries: int

    def should_retry(self, error: Exception, retry_number: int, retries: int) -> bool:
        """Return True when retry `retry_number` (1-indexed) may proceed."""
        ...

    def compute_backoff(self, retry_number: int, retry_after: float | None = None) -> float:
        """Return the delay before retry `retry_number` (1-indexed)."""
        ...


@runtime_checkable
class TokenProvider(Protocol):
    """Session collaborator supplying the current bearer token."""

    async def get_token(self) -> str | None:
        """Return the current bearer token, or None when signed out."""
        ...


@runtime_checkable
class CookieStore(Protocol):
    """Cookie collaborator supplying named cookie values."""

    def get_cookie(self, name: str) -> str | None:
        """Return the cookie value, or None when absent."""
        ...


@runtime_checkable
class MetricsSink(Protocol):
    """Monitoring collaborator accepting per-call metrics."""

    def record(self, metrics: RequestMetrics) -> None:
        """Accept one metrics record; must not block."""
        ...


@runtime_checkable
class RequestInterceptor(Protocol):
    """Transform applied to every outgoing request."""

    async def __call__(self, request: DispatchRequest) -> DispatchRequest: ...


@runtime_checkable
class ResponseInterceptor(Protocol):
    """Transform applied to every successful response."""

    async def __call__(self, response: DispatchResponse) -> DispatchResponse: ...
