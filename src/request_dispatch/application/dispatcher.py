"""Request dispatcher: the single entry point for remote API calls.

Example:
    >>> from request_dispatch.composition import build_dispatcher
    >>> from request_dispatch.config import DispatchConfig
    >>> from request_dispatch.types import RequestOptions
    >>> config = DispatchConfig.from_env()
    >>> async with build_dispatcher(config) as dispatcher:
    ...     contacts = await dispatcher.get("/contacts", options=RequestOptions(should_cache=True))
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping
from dataclasses import replace
from functools import partial
from types import TracebackType
from typing import Self, cast

from ..exceptions import DispatchError, RequestValidationError
from ..infrastructure.cache import MemoryResponseCache, build_cache_key
from ..infrastructure.classification import classify_exception, decode_success, error_for_status
from ..infrastructure.clock import SystemClock
from ..infrastructure.interceptors import (
    ENDPOINT_KEY,
    METHOD_KEY,
    START_TIME_KEY,
    InterceptorPipeline,
)
from ..infrastructure.resilience import CircuitBreaker as CircuitBreakerImpl
from ..infrastructure.resilience import RateLimiter as RateLimiterImpl
from ..infrastructure.resilience import RetryPolicy as RetryPolicyImpl
from ..observability import get_logger
from ..protocols import (
    CircuitBreaker,
    Clock,
    MetricsSink,
    RateLimiter,
    RequestInterceptor,
    ResponseCache,
    ResponseInterceptor,
    RetryPolicy,
    Transport,
)
from ..types import (
    HTTP_METHODS,
    IDEMPOTENT_METHODS,
    CircuitStatus,
    DispatchRequest,
    DispatchResponse,
    RateLimitInfo,
    RequestMetrics,
    RequestOptions,
    TransportResponse,
)

logger = get_logger("request_dispatch.dispatcher")

DEFAULT_MAX_PAYLOAD_BYTES = 5 * 1024 * 1024
_DEFAULT_HEADERS = {"Content-Type": "application/json"}


class RequestDispatcher:
    """Dispatcher with caching, rate limiting, circuit breaking and retries.

    One instance owns all per-endpoint state (circuits, rate windows, cache)
    and should be shared by every call site in the process. Endpoints are
    keyed by method and absolute URL.

    Per call:
    - circuit check: an open circuit fails fast with CircuitBreakerOpen
    - rate limiter: run now, or queue until the endpoint's window allows it
    - cache: GET with `should_cache` returns a live entry without the network
    - request interceptors, then the network call inside the retry loop
    - success closes the circuit, fills the cache and runs response interceptors
    - terminal failure counts against the circuit and raises a DispatchError
    """

    def __init__(
        self,
        *,
        transport: Transport,
        base_url: str = "",
        clock: Clock | None = None,
        cache: ResponseCache | None = None,
        rate_limiter: RateLimiter | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
        interceptors: InterceptorPipeline | None = None,
        monitor: MetricsSink | None = None,
        timeout_seconds: float = 10.0,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        sanitize_error_messages: bool = False,
        cache_sweep_seconds: float = 60.0,
        circuit_sweep_seconds: float = 30.0,
    ) -> None:
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.clock = SystemClock() if clock is None else clock
        self.cache = MemoryResponseCache(clock=self.clock) if cache is None else cache
        self.rate_limiter = (
            RateLimiterImpl(clock=self.clock) if rate_limiter is None else rate_limiter
        )
        self.circuit_breaker = (
            CircuitBreakerImpl(clock=self.clock) if circuit_breaker is None else circuit_breaker
        )
        self.retry_policy = RetryPolicyImpl() if retry_policy is None else retry_policy
        self.interceptors = InterceptorPipeline() if interceptors is None else interceptors
        self.monitor = monitor
        self.timeout_seconds = timeout_seconds
        self.max_payload_bytes = max_payload_bytes
        self.sanitize_error_messages = sanitize_error_messages
        self.cache_sweep_seconds = cache_sweep_seconds
        self.circuit_sweep_seconds = circuit_sweep_seconds
        self._background: list[asyncio.Task[None]] = []

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def start(self) -> None:
        """Start the periodic cache and circuit sweeps on the running loop."""
        if self._background:
            return
        loop = asyncio.get_running_loop()
        self._background = [
            loop.create_task(self._every(self.cache_sweep_seconds, self._sweep_cache)),
            loop.create_task(self._every(self.circuit_sweep_seconds, self._sweep_circuits)),
        ]

    async def aclose(self) -> None:
        """Stop background work, reject queued requests, then close the transport."""
        tasks, self._background = self._background, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.rate_limiter.aclose()
        self.transport.close()

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> None:
        self.interceptors.add_request_interceptor(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> None:
        self.interceptors.add_response_interceptor(interceptor)

    async def get(
        self,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> object:
        return await self._call("GET", path, None, headers, options)

    async def post(
        self,
        path: str,
        body: object = None,
        *,
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> object:
        return await self._call("POST", path, body, headers, options)

    async def put(
        self,
        path: str,
        body: object = None,
        *,
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> object:
        return await self._call("PUT", path, body, headers, options)

    async def patch(
        self,
        path: str,
        body: object = None,
        *,
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> object:
        return await self._call("PATCH", path, body, headers, options)

    async def delete(
        self,
        path: str,
        body: object = None,
        *,
        headers: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> object:
        return await self._call("DELETE", path, body, headers, options)

    async def send(self, request: DispatchRequest) -> DispatchResponse:
        """Dispatch one request and return its response envelope.

        Raises:
            RequestValidationError: If the request is malformed (never retried)
            CircuitBreakerOpen: If the endpoint is isolated (no network attempt)
            RateLimitError: On a remote 429, or a local refusal in raise mode
            DispatchError: Any other classified failure, after retries
        """
        self._validate(request)
        url = self.url_for(request.path)
        endpoint = self.endpoint_key(request.method, url)

        self.circuit_breaker.check(endpoint)

        operation = partial(self._dispatch, request, url, endpoint)
        if request.options.skip_rate_limit:
            return await operation()
        result = await self.rate_limiter.execute(endpoint, operation, request.options.rate_limit)
        return cast(DispatchResponse, result)

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    @staticmethod
    def endpoint_key(method: str, url: str) -> str:
        return f"{method.upper()} {url}"

    def circuit_status(self, path: str, method: str = "GET") -> CircuitStatus:
        return self.circuit_breaker.status(self.endpoint_key(method, self.url_for(path)))

    def rate_limit_info(self, path: str, method: str = "GET") -> RateLimitInfo | None:
        return self.rate_limiter.rate_limit_info(self.endpoint_key(method, self.url_for(path)))

    async def _call(
        self,
        method: str,
        path: str,
        body: object,
        headers: Mapping[str, str] | None,
        options: RequestOptions | None,
    ) -> object:
        request = DispatchRequest(
            method=method,
            path=path,
            headers=headers or {},
            body=body,
            options=options or RequestOptions(),
        )
        response = await self.send(request)
        return response.data

    async def _dispatch(self, request: DispatchRequest, url: str, endpoint: str) -> DispatchResponse:
        options = request.options
        cache_key: str | None = None
        if options.should_cache and request.method in IDEMPOTENT_METHODS:
            cache_key = build_cache_key(request.method, url, request.body, request.headers)
            cached = self.cache.get(cache_key)
            if isinstance(cached, DispatchResponse):
                logger.debug("Cache hit for %s", endpoint)
                return replace(cached, from_cache=True)

        prepared = request.with_default_headers(_DEFAULT_HEADERS).with_metadata(
            **{ENDPOINT_KEY: endpoint, METHOD_KEY: request.method}
        )
        started = self.clock.monotonic()
        try:
            prepared = await self.interceptors.apply_request(prepared)
        except DispatchError as exc:
            self._record_failure(prepared, endpoint, started, exc)
            raise
        except Exception as exc:
            error = classify_exception(exc)
            self._record_failure(prepared, endpoint, started, error)
            raise error from exc
        body = self._encode_body(prepared.body)

        self.circuit_breaker.acquire(endpoint)
        recorded = False
        try:
            try:
                raw = await self._send_with_retry(prepared, url, endpoint, body)
                data = decode_success(raw)
            except DispatchError as exc:
                self.circuit_breaker.record_failure(endpoint)
                recorded = True
                self._record_failure(prepared, endpoint, started, exc)
                raise
            self.circuit_breaker.record_success(endpoint)
            recorded = True
        finally:
            if not recorded:
                self.circuit_breaker.release(endpoint)

        response = DispatchResponse(
            status=raw.status_code,
            data=data,
            headers=raw.headers,
            metadata=prepared.metadata,
        )
        if cache_key is not None:
            self.cache.set(cache_key, response, options.cache_ttl_seconds)
        try:
            return await self.interceptors.apply_response(response)
        except DispatchError:
            raise
        except Exception as exc:
            error = classify_exception(exc)
            logger.warning("Response handling for %s failed: %s", endpoint, exc)
            raise error from exc

    async def _send_with_retry(
        self,
        request: DispatchRequest,
        url: str,
        endpoint: str,
        body: bytes | None,
    ) -> TransportResponse:
        retries = self._retries_for(request)
        timeout = self._timeout_for(request)
        retry_number = 0
        while True:
            try:
                return await self._attempt(request, url, body, timeout)
            except DispatchError as exc:
                retry_number += 1
                if not self.retry_policy.should_retry(exc, retry_number, retries):
                    raise
                delay = self.retry_policy.compute_backoff(retry_number, exc.retry_after)
                logger.info(
                    "Retrying %s in %.2fs (retry %d/%d) after %s",
                    endpoint,
                    delay,
                    retry_number,
                    retries,
                    exc.code,
                )
                await self.clock.sleep(delay)

    async def _attempt(
        self,
        request: DispatchRequest,
        url: str,
        body: bytes | None,
        timeout: float | None,
    ) -> TransportResponse:
        try:
            async with asyncio.timeout(timeout):
                response = await self.transport.send(
                    request.method,
                    url,
                    headers=request.headers,
                    body=body,
                    timeout_seconds=timeout,
                )
        except DispatchError:
            raise
        except Exception as exc:
            raise classify_exception(exc) from exc
        if response.status_code >= 400:
            raise error_for_status(response, sanitize=self.sanitize_error_messages)
        return response

    def _validate(self, request: DispatchRequest) -> None:
        options = request.options
        if not request.path or not request.path.strip():
            raise RequestValidationError(details="Endpoint path is required")
        if request.method not in HTTP_METHODS:
            raise RequestValidationError(details=f"Invalid HTTP method: {request.method}")
        if options.timeout_seconds is not None and options.timeout_seconds < 0:
            raise RequestValidationError(details="Invalid timeout value")
        if options.retries is not None and options.retries < 0:
            raise RequestValidationError(details="Invalid retries value")
        if options.cache_ttl_seconds is not None and options.cache_ttl_seconds < 0:
            raise RequestValidationError(details="Invalid cache TTL value")
        if options.rate_limit is not None and (
            options.rate_limit.max_requests < 1 or options.rate_limit.window_seconds <= 0
        ):
            raise RequestValidationError(details="Invalid rate limit configuration")
        self._encode_body(request.body)

    def _encode_body(self, body: object) -> bytes | None:
        if body is None:
            return None
        try:
            encoded = json.dumps(body).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise RequestValidationError(details=f"Body is not JSON serialisable: {exc}") from exc
        if len(encoded) > self.max_payload_bytes:
            raise RequestValidationError(
                details=(
                    f"Payload size exceeds maximum allowed size of {self.max_payload_bytes} bytes"
                )
            )
        return encoded

    def _retries_for(self, request: DispatchRequest) -> int:
        if request.options.retries is not None:
            return request.options.retries
        if request.method in IDEMPOTENT_METHODS:
            return self.retry_policy.max_retries
        return 0

    def _timeout_for(self, request: DispatchRequest) -> float | None:
        timeout = request.options.timeout_seconds
        if timeout is None:
            timeout = self.timeout_seconds
        # Zero disables the per-attempt deadline.
        return timeout or None

    def _record_failure(
        self,
        request: DispatchRequest,
        endpoint: str,
        started: float,
        error: DispatchError,
    ) -> None:
        logger.warning("Request %s failed: %s (%s)", endpoint, error.message, error.code)
        if self.monitor is None:
            return
        start_time = request.metadata.get(START_TIME_KEY, started)
        if not isinstance(start_time, (int, float)):
            start_time = started
        self.monitor.record(
            RequestMetrics(
                endpoint=endpoint,
                method=request.method,
                duration_seconds=self.clock.monotonic() - start_time,
                status=error.status_code,
                timestamp=self.clock.time(),
                error=error.code,
            )
        )

    def _sweep_cache(self) -> None:
        removed = self.cache.sweep()
        if removed:
            logger.debug("Swept %d expired cache entries", removed)

    def _sweep_circuits(self) -> None:
        self.circuit_breaker.sweep()

    @staticmethod
    async def _every(interval_seconds: float, action: Callable[[], None]) -> None:
        # Housekeeping runs on loop time; the actions themselves read the injected clock.
        while True:
            await asyncio.sleep(interval_seconds)
            action()
