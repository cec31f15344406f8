"""Exports for test fakes."""

from .clock import FakeClock
from .resilience import FakeCircuitBreaker, FakeRateLimiter
from .session import FakeCookieStore, FakeMetricsSink, FakeTokenProvider
from .transport import FakeCall, FakeTransport, json_response

__all__ = [
    "FakeCall",
    "FakeCircuitBreaker",
    "FakeClock",
    "FakeCookieStore",
    "FakeMetricsSink",
    "FakeRateLimiter",
    "FakeTokenProvider",
    "FakeTransport",
    "json_response",
]
