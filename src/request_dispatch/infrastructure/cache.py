"""Cache implementations for infrastructure.

Usage example:
    from request_dispatch.infrastructure.cache import MemoryResponseCache, build_cache_key
    from request_dispatch.infrastructure.clock import SystemClock

    cache = MemoryResponseCache(clock=SystemClock(), default_ttl_seconds=300)
    key = build_cache_key("GET", "https://api.example.com/contacts", None, {})
    cache.set(key, {"items": []})
    cached = cache.get(key)
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing_extensions import override

from ..protocols import Clock, ResponseCache
from ..types import CacheEntry

_VOLATILE_HEADERS = frozenset({"authorization", "x-csrf-token"})


def _empty_entries() -> dict[str, CacheEntry]:
    return {}


def build_cache_key(
    method: str,
    url: str,
    body: object,
    headers: Mapping[str, str],
) -> str:
    """Return a deterministic cache key for a logical request.

    Header names are case-folded and all JSON is emitted with sorted keys, so
    identical requests always produce the same key. Credential headers are
    left out.
    """
    normalised_headers = {
        name.lower(): value
        for name, value in headers.items()
        if name.lower() not in _VOLATILE_HEADERS
    }
    fingerprint = json.dumps(
        {"body": body, "headers": normalised_headers},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()
    return f"{method.upper()}:{url}:{digest}"


@dataclass
class MemoryResponseCache(ResponseCache):
    """In-process TTL cache.

    Entries expire lazily on `get`/`has` and eagerly via `sweep`. An entry is
    never returned once `now >= expires_at`, so a TTL of 0 is always a miss.
    """

    clock: Clock
    default_ttl_seconds: float = 300.0
    _entries: dict[str, CacheEntry] = field(default_factory=_empty_entries, init=False)

    def __len__(self) -> int:
        return len(self._entries)

    @override
    def get(self, key: str) -> object | None:
        entry = self._live_entry(key)
        return None if entry is None else entry.data

    @override
    def set(self, key: str, data: object, ttl_seconds: float | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        now = self.clock.monotonic()
        self._entries[key] = CacheEntry(data=data, timestamp=now, expires_at=now + max(0.0, ttl))

    @override
    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    @override
    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    @override
    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Delete every expired entry and return how many were removed."""
        now = self.clock.monotonic()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock.monotonic() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry
