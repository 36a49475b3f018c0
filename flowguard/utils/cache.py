# flowguard/utils/cache.py
"""
Small TTL cache for advisory lookups (pattern tables, similarity results).

Values are deep-copied on the way in and on the way out, so callers can never
hold a reference into the cache. A cold or swept cache only costs latency.
"""

import copy
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from flowguard.utils.logger import get_logger

log = get_logger("cache")

_MISSING = object()


class TTLCache:
    def __init__(self, ttl: float = 300.0, clock: Optional[Callable[[], float]] = None, max_entries: int = 1024):
        self.ttl = float(ttl)
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._data: Dict[Hashable, Tuple[float, Any]] = {}

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._data.get(key)
        if entry is None:
            return default
        expires, value = entry
        if expires <= self._clock():
            self._data.pop(key, None)
            return default
        return copy.deepcopy(value)

    def set(self, key: Hashable, value: Any) -> None:
        if len(self._data) >= self.max_entries:
            self.sweep()
            if len(self._data) >= self.max_entries:
                # drop the entry closest to expiry
                oldest = min(self._data, key=lambda k: self._data[k][0])
                self._data.pop(oldest, None)
        self._data[key] = (self._clock() + self.ttl, copy.deepcopy(value))

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = compute()
            self.set(key, value)
            return copy.deepcopy(value)
        return value

    def sweep(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        expired = [k for k, (exp, _v) in self._data.items() if exp <= now]
        for k in expired:
            self._data.pop(k, None)
        if expired:
            log.debug("cache sweep removed %d entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._data.clear()
