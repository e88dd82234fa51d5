"""
Rate limiting for the word generation endpoint.

Each client key (normally the caller's IP) gets a sliding one-minute window
and a counter that resets at the UTC day boundary. State is held by the
``RateLimiter`` instance the app is created with: it is lost on restart and
not shared between server instances, so with N instances a client can get
up to N times the configured limits.
"""
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable, Deque, Dict, Optional

from wordgarden import monitoring
from wordgarden.config import RateLimitSettings, settings

logger = logging.getLogger(__name__)

MINUTE = 60.0


@dataclass
class ClientWindow:
    """Request history of one client."""
    day_key: str
    day_count: int = 0
    minute: Deque[float] = field(default_factory=deque)


@dataclass
class RateLimitDecision:
    """Outcome of a rate limit check."""
    allowed: bool
    retry_after: int = 0
    window: Optional[str] = None  # "minute" or "day" when rejected


class RateLimiter:
    """Per-client sliding-minute and per-UTC-day request limits."""

    def __init__(
        self,
        per_minute: int,
        per_day: int,
        day_retry_after: int = 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the limiter.

        Args:
            per_minute: Requests allowed in any 60 second window
            per_day: Requests allowed per UTC calendar day
            day_retry_after: Seconds to suggest once the daily limit is hit
            clock: Wall clock returning epoch seconds
        """
        self.per_minute = per_minute
        self.per_day = per_day
        self.day_retry_after = day_retry_after
        self.clock = clock
        self._clients: Dict[str, ClientWindow] = {}
        self._current_day: Optional[str] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, rate_settings: Optional[RateLimitSettings] = None) -> "RateLimiter":
        rate_settings = rate_settings or settings.rate_limit
        return cls(rate_settings.per_minute, rate_settings.per_day, rate_settings.day_retry_after)

    def _day_key(self, now: float) -> str:
        return datetime.fromtimestamp(now, UTC).date().isoformat()

    def check(self, client_key: str) -> RateLimitDecision:
        """
        Count a request for the client unless it exceeds a limit.

        Rejected requests are not counted.
        """
        with self._lock:
            now = self.clock()
            day_key = self._day_key(now)
            if day_key != self._current_day:
                # A new UTC day invalidates every stored window
                self._clients.clear()
                self._current_day = day_key

            window = self._clients.get(client_key)
            if window is None:
                window = self._clients[client_key] = ClientWindow(day_key=day_key)

            while window.minute and now - window.minute[0] >= MINUTE:
                window.minute.popleft()

            if len(window.minute) >= self.per_minute:
                retry_after = max(1, int(MINUTE) - int(now - window.minute[0]))
                monitoring.rate_limited.labels(window="minute").inc()
                logger.warning(f"Rate limited {client_key}: {self.per_minute}/minute exceeded")
                return RateLimitDecision(allowed=False, retry_after=retry_after, window="minute")

            if window.day_count >= self.per_day:
                monitoring.rate_limited.labels(window="day").inc()
                logger.warning(f"Rate limited {client_key}: {self.per_day}/day exceeded")
                return RateLimitDecision(allowed=False, retry_after=self.day_retry_after, window="day")

            window.minute.append(now)
            window.day_count += 1
            return RateLimitDecision(allowed=True)

    def reset(self) -> None:
        with self._lock:
            self._clients.clear()
            self._current_day = None
