"""Protocol conformance tests for dispatcher collaborators."""

from request_dispatch.infrastructure import (
    CircuitBreaker,
    MemoryResponseCache,
    RateLimiter,
    RequestsCookieStore,
    RetryPolicy,
    StaticTokenProvider,
    SystemClock,
)
from request_dispatch.protocols import CircuitBreaker as CircuitBreakerProtocol
from request_dispatch.protocols import (
    Clock,
    CookieStore,
    MetricsSink,
    ResponseCache,
    TokenProvider,
    Transport,
)
from request_dispatch.protocols import RateLimiter as RateLimiterProtocol
from request_dispatch.protocols import RetryPolicy as RetryPolicyProtocol
from tests.fakes import (
    FakeCircuitBreaker,
    FakeClock,
    FakeCookieStore,
    FakeMetricsSink,
    FakeRateLimiter,
    FakeTokenProvider,
    FakeTransport,
)


def test_rate_limiter_conforms_to_protocol() -> None:
    assert isinstance(RateLimiter(clock=FakeClock()), RateLimiterProtocol)
    assert isinstance(FakeRateLimiter(), RateLimiterProtocol)


def test_circuit_breaker_conforms_to_protocol() -> None:
    assert isinstance(CircuitBreaker(clock=FakeClock()), CircuitBreakerProtocol)
    assert isinstance(FakeCircuitBreaker(), CircuitBreakerProtocol)


def test_retry_policy_conforms_to_protocol() -> None:
    assert isinstance(RetryPolicy(), RetryPolicyProtocol)


def test_cache_conforms_to_protocol() -> None:
    assert isinstance(MemoryResponseCache(clock=FakeClock()), ResponseCache)


def test_clocks_conform_to_protocol() -> None:
    assert isinstance(SystemClock(), Clock)
    assert isinstance(FakeClock(), Clock)


def test_session_collaborators_conform_to_protocols() -> None:
    assert isinstance(StaticTokenProvider("t"), TokenProvider)
    assert isinstance(FakeTokenProvider(), TokenProvider)
    assert isinstance(FakeCookieStore(), CookieStore)
    assert isinstance(FakeMetricsSink(), MetricsSink)
    assert isinstance(FakeTransport(), Transport)


def test_requests_cookie_store_conforms_to_protocol() -> None:
    import requests

    assert isinstance(RequestsCookieStore(requests.Session().cookies), CookieStore)
