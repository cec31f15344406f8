"""Clock implementations for infrastructure."""

from __future__ import annotations

import asyncio
import time
from typing_extensions import override

from ..protocols import Clock


class SystemClock(Clock):
    """Real clock backed by `time.monotonic` and `asyncio.sleep`."""

    @override
    def monotonic(self) -> float:
        return time.monotonic()

    @override
    def time(self) -> float:
        return time.time()

    @override
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
