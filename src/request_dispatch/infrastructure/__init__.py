"""Concrete infrastructure implementations and shared helpers."""

from .cache import MemoryResponseCache, build_cache_key
from .classification import (
    classify_exception,
    decode_success,
    error_for_status,
    parse_retry_after,
    sanitize_message,
)
from .clock import SystemClock
from .credentials import RequestsCookieStore, StaticTokenProvider
from .interceptors import (
    AuthInterceptor,
    CsrfInterceptor,
    InterceptorPipeline,
    MonitoringInterceptor,
    TimingInterceptor,
)
from .monitoring import RequestMonitor
from .resilience import CircuitBreaker, RateLimiter, RetryPolicy
from .transport import RequestsTransport

__all__ = [
    "AuthInterceptor",
    "CircuitBreaker",
    "CsrfInterceptor",
    "InterceptorPipeline",
    "MemoryResponseCache",
    "MonitoringInterceptor",
    "RateLimiter",
    "RequestMonitor",
    "RequestsCookieStore",
    "RequestsTransport",
    "RetryPolicy",
    "StaticTokenProvider",
    "SystemClock",
    "TimingInterceptor",
    "build_cache_key",
    "classify_exception",
    "decode_success",
    "error_for_status",
    "parse_retry_after",
    "sanitize_message",
]
