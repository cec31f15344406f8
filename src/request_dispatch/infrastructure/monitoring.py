"""In-memory request monitoring."""

from __future__ import annotations

from collections import deque
from typing_extensions import override

from ..observability import get_logger
from ..protocols import MetricsSink
from ..types import RequestMetrics

logger = get_logger("request_dispatch.monitoring")


class RequestMonitor(MetricsSink):
    """Keeps the most recent `capacity` request metrics."""

    def __init__(self, capacity: int = 1000) -> None:
        self._metrics: deque[RequestMetrics] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._metrics)

    @override
    def record(self, metrics: RequestMetrics) -> None:
        self._metrics.append(metrics)
        logger.debug(
            "%s %s -> %s in %.1fms%s",
            metrics.method,
            metrics.endpoint,
            metrics.status,
            metrics.duration_seconds * 1000,
            f" ({metrics.error})" if metrics.error else "",
        )

    def metrics(self) -> list[RequestMetrics]:
        return list(self._metrics)

    def clear(self) -> None:
        self._metrics.clear()
