"""Composition root for wiring the dispatcher and CLI dependencies."""

from __future__ import annotations

import requests

from .application.dispatcher import RequestDispatcher
from .cli import create_app
from .config import DispatchConfig
from .infrastructure.cache import MemoryResponseCache
from .infrastructure.clock import SystemClock
from .infrastructure.credentials import RequestsCookieStore, StaticTokenProvider
from .infrastructure.interceptors import (
    AuthInterceptor,
    CsrfInterceptor,
    InterceptorPipeline,
    MonitoringInterceptor,
    TimingInterceptor,
)
from .infrastructure.monitoring import RequestMonitor
from .infrastructure.resilience import CircuitBreaker, RateLimiter, RetryPolicy
from .infrastructure.transport import RequestsTransport
from .protocols import Clock, CookieStore, TokenProvider, Transport
from .types import RateLimitConfig


def build_dispatcher(
    config: DispatchConfig,
    *,
    transport: Transport | None = None,
    clock: Clock | None = None,
    token_provider: TokenProvider | None = None,
    cookie_store: CookieStore | None = None,
    monitor: RequestMonitor | None = None,
) -> RequestDispatcher:
    """Build a fully wired dispatcher.

    Args:
        config: Dispatch configuration.
        transport: Transport override; defaults to a requests-backed session.
        clock: Clock override; defaults to the system clock.
        token_provider: Session collaborator; defaults to `config.bearer_token`.
        cookie_store: Cookie collaborator; defaults to the requests session's jar
            when the default transport is used.
        monitor: Metrics sink shared by the dispatcher and the monitoring interceptor.
    """
    if clock is None:
        clock = SystemClock()
    if transport is None:
        session = requests.Session()
        transport = RequestsTransport(session=session)
        if cookie_store is None:
            cookie_store = RequestsCookieStore(session.cookies)
    if token_provider is None:
        token_provider = StaticTokenProvider(config.bearer_token)
    if monitor is None:
        monitor = RequestMonitor(capacity=config.metrics_capacity)

    interceptors = InterceptorPipeline()
    interceptors.add_request_interceptor(AuthInterceptor(token_provider))
    if cookie_store is not None:
        interceptors.add_request_interceptor(
            CsrfInterceptor(cookie_store, cookie_name=config.csrf_cookie_name)
        )
    interceptors.add_request_interceptor(TimingInterceptor(clock))
    interceptors.add_response_interceptor(MonitoringInterceptor(monitor, clock))

    return RequestDispatcher(
        transport=transport,
        base_url=config.base_url,
        clock=clock,
        cache=MemoryResponseCache(clock=clock, default_ttl_seconds=config.cache_ttl_seconds),
        rate_limiter=RateLimiter(
            clock=clock,
            default_config=RateLimitConfig(
                max_requests=config.rate_limit_max_requests,
                window_seconds=config.rate_limit_window_seconds,
            ),
            queue_delay_seconds=config.rate_limit_queue_delay_seconds,
            overflow="raise" if config.rate_limit_overflow == "raise" else "queue",
        ),
        circuit_breaker=CircuitBreaker(
            clock=clock,
            threshold=config.circuit_breaker_threshold,
            recovery_timeout_seconds=config.circuit_breaker_reset_seconds,
        ),
        retry_policy=RetryPolicy(
            max_retries=config.max_retries,
            backoff_base_seconds=config.backoff_base_seconds,
            max_backoff_seconds=config.backoff_max_seconds,
            jitter_seconds=config.backoff_jitter_seconds,
        ),
        interceptors=interceptors,
        monitor=monitor,
        timeout_seconds=config.timeout_seconds,
        max_payload_bytes=config.max_payload_bytes,
        sanitize_error_messages=config.sanitize_error_messages,
        cache_sweep_seconds=config.cache_sweep_seconds,
        circuit_sweep_seconds=config.circuit_breaker_sweep_seconds,
    )


app = create_app(build_dispatcher)
