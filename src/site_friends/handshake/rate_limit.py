"""Fixed-window limits for inbound friend requests."""

import time

from cachetools import TTLCache
from structlog import get_logger

from site_friends.exceptions import RateLimitedError


logger = get_logger(__name__)


class FriendRequestRateLimiter:
    """Allows ``max_requests`` per key in each ``window_seconds`` window.

    Each key's window starts with its first hit and expires with the cache
    entry, so counts reset on their own.
    """

    def __init__(self, max_requests: int, window_seconds: int, maxsize: int = 10_000):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: TTLCache[str, list[float]] = TTLCache(
            maxsize=maxsize, ttl=window_seconds, timer=time.monotonic
        )

    def check(self, *keys: str | None) -> None:
        """Count one request against every key.

        Raises:
            RateLimitedError: If any key has exhausted its window; nothing is
                counted in that case
        """
        active = [key for key in keys if key]
        now = time.monotonic()
        for key in active:
            window = self._windows.get(key)
            if window is not None and window[0] >= self.max_requests:
                retry_after = max(1, int(self.window_seconds - (now - window[1])) + 1)
                logger.warning("friend_request_rate_limited", key=key)
                raise RateLimitedError(retry_after)

        for key in active:
            window = self._windows.get(key)
            if window is None:
                self._windows[key] = [1, now]
            else:
                # Mutated in place so the entry keeps its original expiry
                window[0] += 1

    def reset(self) -> None:
        self._windows.clear()
