"""Interceptor pipeline and built-in interceptors.

Usage example:
    from request_dispatch.infrastructure.interceptors import (
        AuthInterceptor,
        InterceptorPipeline,
        TimingInterceptor,
    )

    pipeline = InterceptorPipeline()
    pipeline.add_request_interceptor(AuthInterceptor(token_provider))
    pipeline.add_request_interceptor(TimingInterceptor(clock))
"""

from __future__ import annotations

from typing_extensions import override

from ..protocols import (
    Clock,
    CookieStore,
    MetricsSink,
    RequestInterceptor,
    ResponseInterceptor,
    TokenProvider,
)
from ..types import DispatchRequest, DispatchResponse, RequestMetrics

START_TIME_KEY = "start_time"
ENDPOINT_KEY = "endpoint"
METHOD_KEY = "method"


class InterceptorPipeline:
    """Two independently ordered chains of async transforms.

    Registration order is application order. Each interceptor receives the
    previous one's output.
    """

    def __init__(self) -> None:
        self._request_interceptors: list[RequestInterceptor] = []
        self._response_interceptors: list[ResponseInterceptor] = []

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> None:
        self._request_interceptors.append(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> None:
        self._response_interceptors.append(interceptor)

    @property
    def request_interceptors(self) -> tuple[RequestInterceptor, ...]:
        return tuple(self._request_interceptors)

    @property
    def response_interceptors(self) -> tuple[ResponseInterceptor, ...]:
        return tuple(self._response_interceptors)

    async def apply_request(self, request: DispatchRequest) -> DispatchRequest:
        for interceptor in self._request_interceptors:
            request = await interceptor(request)
        return request

    async def apply_response(self, response: DispatchResponse) -> DispatchResponse:
        for interceptor in self._response_interceptors:
            response = await interceptor(response)
        return response


class AuthInterceptor(RequestInterceptor):
    """Sets `Authorization: Bearer <token>` when the session has a token."""

    def __init__(self, token_provider: TokenProvider) -> None:
        self._token_provider = token_provider

    @override
    async def __call__(self, request: DispatchRequest) -> DispatchRequest:
        token = await self._token_provider.get_token()
        if not token:
            return request
        return request.with_header("Authorization", f"Bearer {token}")


class CsrfInterceptor(RequestInterceptor):
    """Copies the CSRF cookie into the `X-CSRF-Token` header."""

    def __init__(self, cookie_store: CookieStore, cookie_name: str = "csrf_token") -> None:
        self._cookie_store = cookie_store
        self._cookie_name = cookie_name

    @override
    async def __call__(self, request: DispatchRequest) -> DispatchRequest:
        token = self._cookie_store.get_cookie(self._cookie_name)
        if not token:
            return request
        return request.with_header("X-CSRF-Token", token)


class TimingInterceptor(RequestInterceptor):
    """Stamps the request start time into metadata."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock

    @override
    async def __call__(self, request: DispatchRequest) -> DispatchRequest:
        return request.with_metadata(**{START_TIME_KEY: self._clock.monotonic()})


class MonitoringInterceptor(ResponseInterceptor):
    """Reports timing for responses whose request went through TimingInterceptor."""

    def __init__(self, sink: MetricsSink, clock: Clock) -> None:
        self._sink = sink
        self._clock = clock

    @override
    async def __call__(self, response: DispatchResponse) -> DispatchResponse:
        start_time = response.metadata.get(START_TIME_KEY)
        if isinstance(start_time, (int, float)):
            self._sink.record(
                RequestMetrics(
                    endpoint=str(response.metadata.get(ENDPOINT_KEY, "")),
                    method=str(response.metadata.get(METHOD_KEY, "")),
                    duration_seconds=self._clock.monotonic() - start_time,
                    status=response.status,
                    timestamp=self._clock.time(),
                )
            )
        return response
