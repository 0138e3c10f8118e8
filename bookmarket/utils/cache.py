from __future__ import annotations

import time
from typing import Any, Callable, Hashable


class TTLCache:
    """
    Small in-process cache with a fixed TTL per entry.

    Values are replaced wholesale on refresh, so a reader either sees the old
    value or the new one. Two callers refreshing the same expired key at once
    both run the factory; the last one to finish wins.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return default
        return value

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        self._entries[key] = (self._clock() + ttl, value)

    def get_or_create(self, key: Hashable, ttl: float, factory: Callable[[], Any]) -> Any:
        entry = self._entries.get(key)
        if entry is not None and self._clock() < entry[0]:
            return entry[1]
        value = factory()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries = {}

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING


_MISSING = object()
