"""Per-partner request quotas backed by Redis counters."""
import redis
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.errors import DependencyError
from app.middleware.logging import get_logger

logger = get_logger()


@dataclass(frozen=True)
class QuotaSlot:
    """Outcome of one ``acquire`` call."""

    window_key: str
    count: int
    limit: int
    allowed: bool

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class RateLimiter:
    """
    Fixed window quota: at most ``limit`` accepted requests per ``window`` seconds.

    Windows are aligned to the Unix epoch, so every instance of the service
    agrees on where the current window starts. A slot taken for a request
    that the caller then refuses is handed back with ``release``.
    """

    def __init__(self, redis_client: redis.Redis, prefix: str = "rate_limit"):
        self.redis = redis_client
        self.prefix = prefix

    def window_key(self, key: str, window: int, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        window_start = int(now.timestamp()) // window * window
        return f"{self.prefix}:{key}:{window_start}"

    def acquire(self, key: str, limit: int, window: int, now: Optional[datetime] = None) -> QuotaSlot:
        """
        Take one slot in the current window for ``key``.

        A full window is reported without touching the counter. When two
        callers race past the limit, the losing increment is undone.

        Raises:
            DependencyError: If Redis cannot be reached
        """
        window_key = self.window_key(key, window, now)

        try:
            current = self.redis.get(window_key)
            if current and int(current) >= limit:
                return QuotaSlot(window_key, int(current), limit, allowed=False)

            pipe = self.redis.pipeline()
            pipe.incr(window_key)
            pipe.expire(window_key, window)
            count = pipe.execute()[0]

            if count > limit:
                self.redis.decr(window_key)
                return QuotaSlot(window_key, count - 1, limit, allowed=False)
        except redis.RedisError as e:
            raise DependencyError("Rate limiter unavailable") from e

        return QuotaSlot(window_key, count, limit, allowed=True)

    def release(self, slot: QuotaSlot) -> None:
        """Give back a slot whose request was refused after ``acquire``."""
        if not slot.allowed:
            return
        try:
            self.redis.decr(slot.window_key)
        except redis.RedisError as e:
            # The refusal is what the caller reports; the slot just stays used
            logger.warning("rate_limit_release_failed", window_key=slot.window_key, error=str(e))
