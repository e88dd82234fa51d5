"""In-process response cache with a fixed time-to-live.

Entries live in process memory only: they vanish on restart and are not
shared between server instances.
"""
import hashlib
import json
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


def cache_key(obj: Any) -> str:
    """SHA-256 of the canonical JSON form of ``obj``."""
    encoded = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class ResponseCache:
    """Maps keys to values that expire ``ttl`` seconds after being stored."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic, max_entries: int = 256):
        self.ttl = ttl
        self.clock = clock
        self.max_entries = max_entries
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self.clock() - stored_at > self.ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            now = self.clock()
            if len(self._entries) >= self.max_entries and key not in self._entries:
                self._evict(now)
            self._entries[key] = (now, value)

    def _evict(self, now: float) -> None:
        """Drop expired entries, then the oldest one if still full."""
        for key, (stored_at, _) in list(self._entries.items()):
            if now - stored_at > self.ttl:
                del self._entries[key]
        if len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
