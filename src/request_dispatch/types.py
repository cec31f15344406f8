"""Typed data contracts shared by the dispatcher and its collaborators."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import Literal, Self

from requests.structures import CaseInsensitiveDict

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

HTTP_METHODS: frozenset[str] = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})
IDEMPOTENT_METHODS: frozenset[str] = frozenset({"GET"})

Operation = Callable[[], Awaitable[object]]


def _empty_headers() -> Mapping[str, str]:
    return CaseInsensitiveDict()


def _empty_metadata() -> Mapping[str, object]:
    return MappingProxyType({})


class CircuitStatus(StrEnum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-endpoint window: at most `max_requests` within `window_seconds`."""

    max_requests: int = 50
    window_seconds: float = 1.0


@dataclass(frozen=True)
class RequestOptions:
    """Per-call dispatch options.

    `None` means "use the dispatcher default" for the optional fields.
    A `cache_ttl_seconds` of 0 makes every call a cache miss.
    """

    should_cache: bool = False
    cache_ttl_seconds: float | None = None
    retries: int | None = None
    timeout_seconds: float | None = None
    skip_rate_limit: bool = False
    rate_limit: RateLimitConfig | None = None


@dataclass(frozen=True)
class DispatchRequest:
    """A single outgoing call, owned by the caller until dispatch completes.

    Interceptors derive new requests with `with_header`/`with_metadata`
    rather than mutating the one they were given.
    """

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=_empty_headers)
    body: object = None
    options: RequestOptions = field(default_factory=RequestOptions)
    metadata: Mapping[str, object] = field(default_factory=_empty_metadata)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", CaseInsensitiveDict(self.headers))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def with_header(self, name: str, value: str) -> Self:
        headers = CaseInsensitiveDict(self.headers)
        headers[name] = value
        return replace(self, headers=headers)

    def with_default_headers(self, defaults: Mapping[str, str]) -> Self:
        """Return a copy where `defaults` apply only to headers not already set."""
        headers = CaseInsensitiveDict(defaults)
        headers.update(self.headers)
        return replace(self, headers=headers)

    def with_metadata(self, **values: object) -> Self:
        return replace(self, metadata={**self.metadata, **values})


@dataclass(frozen=True)
class DispatchResponse:
    """Successful response envelope; `data` is the decoded, unwrapped payload."""

    status: int
    data: object
    headers: Mapping[str, str] = field(default_factory=_empty_headers)
    metadata: Mapping[str, object] = field(default_factory=_empty_metadata)
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400


@dataclass(frozen=True)
class TransportResponse:
    """Raw outcome of a single network attempt."""

    status_code: int
    text: str = ""
    headers: Mapping[str, str] = field(default_factory=_empty_headers)


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and its validity window (monotonic clock seconds)."""

    data: object
    timestamp: float
    expires_at: float


@dataclass
class CircuitState:
    """Mutable breaker state for one endpoint."""

    failure_count: int = 0
    last_failure_at: float | None = None
    status: CircuitStatus = CircuitStatus.CLOSED
    half_open_calls: int = 0


@dataclass
class RateWindow:
    """Fixed-window request counter for one endpoint."""

    count: int
    reset_at: float
    max_requests: int


@dataclass(frozen=True)
class RateLimitInfo:
    """Observable view of an endpoint's current rate window."""

    remaining: int
    reset_at: float


@dataclass(frozen=True)
class RequestMetrics:
    """One observed call, as consumed by a monitoring sink."""

    endpoint: str
    method: str
    duration_seconds: float
    status: int
    timestamp: float
    error: str | None = None
