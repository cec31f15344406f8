"""Resilience utilities for infrastructure.

Usage example:
    from request_dispatch.infrastructure.clock import SystemClock
    from request_dispatch.infrastructure.resilience import CircuitBreaker, RateLimiter

    clock = SystemClock()
    rate_limiter = RateLimiter(clock=clock)
    circuit_breaker = CircuitBreaker(clock=clock, threshold=5)
"""

from __future__ import annotations

import asyncio
import random
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Literal
from typing_extensions import override

from ..exceptions import (
    CircuitBreakerOpen,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
)
from ..observability import get_logger
from ..protocols import CircuitBreaker as CircuitBreakerProtocol
from ..protocols import Clock
from ..protocols import RateLimiter as RateLimiterProtocol
from ..protocols import RetryPolicy as RetryPolicyProtocol
from ..types import (
    CircuitState,
    CircuitStatus,
    Operation,
    RateLimitConfig,
    RateLimitInfo,
    RateWindow,
)

logger = get_logger("request_dispatch.infrastructure.resilience")

OverflowMode = Literal["queue", "raise"]


def _empty_circuits() -> dict[str, CircuitState]:
    return {}


@dataclass
class CircuitBreaker(CircuitBreakerProtocol):
    """Per-endpoint circuit breaker.

    Opens after `threshold` consecutive failures. Once `recovery_timeout_seconds`
    has passed since the last failure the circuit goes half-open and admits
    `half_open_max_calls` probe(s); a probe success closes it, a probe failure
    re-opens it.
    """

    clock: Clock
    threshold: int = 5
    recovery_timeout_seconds: float = 60.0
    half_open_max_calls: int = 1
    _circuits: dict[str, CircuitState] = field(default_factory=_empty_circuits, init=False)

    @override
    def check(self, endpoint: str) -> None:
        """Raise CircuitBreakerOpen if the endpoint currently rejects calls."""
        circuit = self._circuits.get(endpoint)
        if circuit is None:
            return
        self._maybe_half_open(endpoint, circuit)
        if circuit.status == CircuitStatus.OPEN:
            raise self._open_error(endpoint, circuit)
        if (
            circuit.status == CircuitStatus.HALF_OPEN
            and circuit.half_open_calls >= self.half_open_max_calls
        ):
            raise self._open_error(endpoint, circuit)

    @override
    def acquire(self, endpoint: str) -> None:
        """Claim a network attempt, taking the probe slot when half-open."""
        self.check(endpoint)
        circuit = self._circuits.get(endpoint)
        if circuit is not None and circuit.status == CircuitStatus.HALF_OPEN:
            circuit.half_open_calls += 1

    @override
    def release(self, endpoint: str) -> None:
        circuit = self._circuits.get(endpoint)
        if circuit is not None and circuit.half_open_calls > 0:
            circuit.half_open_calls -= 1

    @override
    def record_success(self, endpoint: str) -> None:
        """Record a successful call - closes the circuit and resets the count."""
        circuit = self._circuits.get(endpoint)
        if circuit is None:
            return
        if circuit.status != CircuitStatus.CLOSED:
            logger.info("Circuit closed for %s", endpoint)
        circuit.failure_count = 0
        circuit.last_failure_at = None
        circuit.status = CircuitStatus.CLOSED
        circuit.half_open_calls = 0

    @override
    def record_failure(self, endpoint: str) -> None:
        """Record a failed call - may open the circuit."""
        circuit = self._circuits.setdefault(endpoint, CircuitState())
        circuit.failure_count += 1
        circuit.last_failure_at = self.clock.monotonic()
        circuit.half_open_calls = 0
        if circuit.status == CircuitStatus.HALF_OPEN:
            circuit.status = CircuitStatus.OPEN
            logger.warning("Probe failed, circuit re-opened for %s", endpoint)
        elif circuit.failure_count >= self.threshold and circuit.status != CircuitStatus.OPEN:
            circuit.status = CircuitStatus.OPEN
            logger.warning(
                "Circuit opened for %s after %d consecutive failures",
                endpoint,
                circuit.failure_count,
            )

    @override
    def status(self, endpoint: str) -> CircuitStatus:
        circuit = self._circuits.get(endpoint)
        if circuit is None:
            return CircuitStatus.CLOSED
        self._maybe_half_open(endpoint, circuit)
        return circuit.status

    def state(self, endpoint: str) -> CircuitState:
        """Return a snapshot of the endpoint's state."""
        circuit = self._circuits.get(endpoint)
        return CircuitState() if circuit is None else replace(circuit)

    def is_open(self, endpoint: str) -> bool:
        return self.status(endpoint) == CircuitStatus.OPEN

    def sweep(self) -> list[str]:
        """Move every cooled-down open circuit to half-open; return their endpoints."""
        moved: list[str] = []
        for endpoint, circuit in self._circuits.items():
            if self._maybe_half_open(endpoint, circuit):
                moved.append(endpoint)
        return moved

    def reset(self, endpoint: str | None = None) -> None:
        """Manually reset one endpoint, or every endpoint when None."""
        if endpoint is None:
            self._circuits.clear()
            return
        self._circuits.pop(endpoint, None)

    def _maybe_half_open(self, endpoint: str, circuit: CircuitState) -> bool:
        if circuit.status != CircuitStatus.OPEN or circuit.last_failure_at is None:
            return False
        if self.clock.monotonic() - circuit.last_failure_at < self.recovery_timeout_seconds:
            return False
        circuit.status = CircuitStatus.HALF_OPEN
        circuit.half_open_calls = 0
        logger.info("Circuit half-open for %s; allowing a probe", endpoint)
        return True

    def _open_error(self, endpoint: str, circuit: CircuitState) -> CircuitBreakerOpen:
        return CircuitBreakerOpen(endpoint, circuit.failure_count, self.threshold)


@dataclass
class _QueuedRequest:
    endpoint: str
    operation: Operation
    config: RateLimitConfig
    future: asyncio.Future[object]


def _empty_windows() -> dict[str, RateWindow]:
    return {}


def _empty_queue() -> deque[_QueuedRequest]:
    return deque()


def _empty_pending() -> dict[str, int]:
    return {}


@dataclass
class RateLimiter(RateLimiterProtocol):
    """Per-endpoint fixed-window rate limiter with a serialised overflow queue.

    Requests within an endpoint's window run immediately. Overflow requests
    join a single FIFO queue drained by one worker task, which waits for the
    endpoint's window to reset when needed, awaits each request to completion
    and then pauses `queue_delay_seconds` before starting the next one.
    Queued requests are never dropped. With `overflow="raise"` the limiter
    raises RateLimitError instead of queueing (deprecated mode).
    """

    clock: Clock
    default_config: RateLimitConfig = field(default_factory=RateLimitConfig)
    queue_delay_seconds: float = 0.1
    overflow: OverflowMode = "queue"
    _windows: dict[str, RateWindow] = field(default_factory=_empty_windows, init=False)
    _queue: deque[_QueuedRequest] = field(default_factory=_empty_queue, init=False)
    _pending: dict[str, int] = field(default_factory=_empty_pending, init=False)
    _worker: asyncio.Task[None] | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        if self.overflow == "raise":
            logger.warning("Rate limit overflow mode \"raise\" is deprecated; use \"queue\"")

    @override
    async def execute(
        self,
        endpoint: str,
        operation: Operation,
        config: RateLimitConfig | None = None,
    ) -> object:
        cfg = config or self.default_config
        # Same-endpoint arrivals stay behind anything already queued.
        if self._pending.get(endpoint, 0) == 0 and not self.should_queue(endpoint, cfg):
            self._increment(endpoint, cfg)
            return await operation()

        if self.overflow == "raise":
            window = self._windows.get(endpoint)
            retry_after = None if window is None else window.reset_at - self.clock.monotonic()
            raise RateLimitError(retry_after=retry_after)

        future: asyncio.Future[object] = asyncio.get_running_loop().create_future()
        self._queue.append(_QueuedRequest(endpoint, operation, cfg, future))
        self._pending[endpoint] = self._pending.get(endpoint, 0) + 1
        logger.debug("Queued request for %s (%d waiting)", endpoint, len(self._queue))
        self._ensure_worker()
        return await future

    def should_queue(self, endpoint: str, config: RateLimitConfig | None = None) -> bool:
        """Return True when the endpoint's live window is at capacity."""
        cfg = config or self.default_config
        window = self._live_window(endpoint)
        return window is not None and window.count >= cfg.max_requests

    @override
    def rate_limit_info(self, endpoint: str) -> RateLimitInfo | None:
        window = self._live_window(endpoint)
        if window is None:
            return None
        return RateLimitInfo(
            remaining=max(0, window.max_requests - window.count),
            reset_at=window.reset_at,
        )

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def clear_queue(self) -> None:
        """Reject every queued request with RateLimitError."""
        while self._queue:
            item = self._queue.popleft()
            self._pending[item.endpoint] -= 1
            if not item.future.done():
                item.future.set_exception(RateLimitError("Rate limit queue cleared"))

    async def aclose(self) -> None:
        """Stop the drain worker and reject anything still queued."""
        self.clear_queue()
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

    def _live_window(self, endpoint: str) -> RateWindow | None:
        window = self._windows.get(endpoint)
        if window is None:
            return None
        if self.clock.monotonic() >= window.reset_at:
            del self._windows[endpoint]
            return None
        return window

    def _increment(self, endpoint: str, config: RateLimitConfig) -> None:
        window = self._live_window(endpoint)
        if window is None:
            self._windows[endpoint] = RateWindow(
                count=1,
                reset_at=self.clock.monotonic() + config.window_seconds,
                max_requests=config.max_requests,
            )
            return
        window.count += 1
        window.max_requests = config.max_requests

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._queue:
            item = self._queue.popleft()
            if item.future.done():
                # Caller gave up while waiting.
                self._pending[item.endpoint] -= 1
                continue
            try:
                # The item stays pending until it holds a slot in its window.
                try:
                    while self.should_queue(item.endpoint, item.config):
                        window = self._windows[item.endpoint]
                        await self.clock.sleep(window.reset_at - self.clock.monotonic())
                    self._increment(item.endpoint, item.config)
                finally:
                    self._pending[item.endpoint] -= 1
                result = await item.operation()
            except asyncio.CancelledError:
                item.future.cancel()
                raise
            except Exception as exc:
                if not item.future.done():
                    item.future.set_exception(exc)
            else:
                if not item.future.done():
                    item.future.set_result(result)
            await self.clock.sleep(self.queue_delay_seconds)


@dataclass
class RetryPolicy(RetryPolicyProtocol):
    """Retry policy for transient failures.

    Network errors, timeouts and 5xx responses are retryable; 4xx responses
    and internal short-circuits never are. The delay before retry n is
    `backoff_base_seconds * 2**(n-1)`, capped at `max_backoff_seconds`.
    """

    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    max_backoff_seconds: float = 10.0
    jitter_seconds: float = 0.0
    retryable_errors: tuple[type[Exception], ...] = (
        NetworkError,
        RequestTimeoutError,
        ServerError,
    )

    def is_retryable(self, error: Exception) -> bool:
        return isinstance(error, self.retryable_errors)

    @override
    def should_retry(self, error: Exception, retry_number: int, retries: int) -> bool:
        return retry_number <= retries and self.is_retryable(error)

    @override
    def compute_backoff(self, retry_number: int, retry_after: float | None = None) -> float:
        """Compute backoff delay with optional Retry-After override."""
        exponent = max(0, retry_number - 1)
        base = min(self.max_backoff_seconds, self.backoff_base_seconds * (2**exponent))
        if retry_after is not None:
            base = max(base, float(retry_after))
        if self.jitter_seconds > 0:
            base += random.uniform(0.0, self.jitter_seconds)
        return float(base)
