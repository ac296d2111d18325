"""Redis cache for partner earnings summaries.

The cache is an accelerator only: when Redis is unreachable the summary is
computed from the database and a warning is logged.
"""
import json
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

import redis
import structlog

logger = structlog.get_logger()


def _encode(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class EarningsCache:
    """Short-lived cache of earnings summaries, keyed by partner and period."""

    def __init__(self, redis_client: redis.Redis, ttl: int = 120):
        self.redis = redis_client
        self.ttl = ttl

    def _get_key(self, partner_id: UUID, period: str) -> str:
        return f"partner:earnings:summary:{partner_id}:{period}"

    def get_summary(self, partner_id: UUID, period: str) -> Optional[Dict]:
        try:
            raw = self.redis.get(self._get_key(partner_id, period))
        except redis.RedisError as e:
            logger.warning("earnings_cache_unavailable", operation="get", error=str(e))
            return None

        if not raw:
            return None
        return json.loads(raw)

    def set_summary(self, partner_id: UUID, period: str, summary: Dict) -> None:
        # Decimals and datetimes go out as strings; the response schema parses them back
        payload = json.dumps(summary, default=_encode)
        try:
            self.redis.setex(self._get_key(partner_id, period), self.ttl, payload)
        except redis.RedisError as e:
            logger.warning("earnings_cache_unavailable", operation="set", error=str(e))

    def invalidate(self, partner_id: UUID) -> None:
        """Drop every cached period for a partner."""
        try:
            for key in self.redis.scan_iter(match=f"partner:earnings:summary:{partner_id}:*"):
                self.redis.delete(key)
        except redis.RedisError as e:
            logger.warning("earnings_cache_unavailable", operation="invalidate", error=str(e))
