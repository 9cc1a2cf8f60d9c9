"""Per-source admission control.

Each source has a minute bucket, an hour bucket and a short-lived burst
counter. A notification is admitted only if all three are below their
limits, in which case all three are incremented; a rejection changes
nothing. Buckets are keyed by ``floor(now / 60)`` and ``floor(now / 3600)``
so counts reset at bucket boundaries, and the burst counter expires a fixed
window after its first increment.
"""

from __future__ import annotations

import logging
import math
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Final

from redis.asyncio import Redis

from notification_queue.config.models import RateLimitConfig
from notification_queue.types.aliases import Clock

logger = logging.getLogger(__name__)

MINUTE: Final[int] = 60
HOUR: Final[int] = 3600

_UNSAFE_SOURCE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def normalise_source(source: str) -> str:
    """Make a source safe for use inside counter keys.

    Examples:
        >>> normalise_source("servicenow client/prod")
        'servicenow_client_prod'
    """
    return _UNSAFE_SOURCE_CHARS.sub("_", source)


def bucket_index(now: float, width: int) -> int:
    return math.floor(now / width)


class BaseRateLimiter(ABC):
    """Admission contract shared by the in-process and Redis limiters."""

    def __init__(self, config: RateLimitConfig, *, clock: Clock = time.time) -> None:
        self.config: RateLimitConfig = config
        self._clock: Clock = clock

    @abstractmethod
    async def admit(self, source: str) -> bool:
        """Check and, if admitted, count one notification from ``source``.

        Returns:
            False when any counter is already at its limit
        """

    @abstractmethod
    async def cleanup(self, now: float | None = None) -> int:
        """Drop counters older than the retention window.

        Returns:
            Number of counters removed
        """


@dataclass(slots=True)
class _Burst:
    count: int
    expires_at: float


class RateLimiter(BaseRateLimiter):
    """In-process limiter for a single dispatcher process."""

    def __init__(self, config: RateLimitConfig, *, clock: Clock = time.time) -> None:
        super().__init__(config, clock=clock)
        self._buckets: dict[tuple[str, int, int], int] = {}
        self._bursts: dict[str, _Burst] = {}

    async def admit(self, source: str) -> bool:
        key = normalise_source(source)
        now = self._clock()
        minute_key = (key, MINUTE, bucket_index(now, MINUTE))
        hour_key = (key, HOUR, bucket_index(now, HOUR))

        burst = self._bursts.get(key)
        if burst is not None and burst.expires_at <= now:
            del self._bursts[key]
            burst = None

        if (
            self._buckets.get(minute_key, 0) >= self.config.per_minute
            or self._buckets.get(hour_key, 0) >= self.config.per_hour
            or (burst.count if burst is not None else 0) >= self.config.burst_size
        ):
            logger.debug("Rate limit reached", extra={"source": key})
            return False

        self._buckets[minute_key] = self._buckets.get(minute_key, 0) + 1
        self._buckets[hour_key] = self._buckets.get(hour_key, 0) + 1
        if burst is None:
            self._bursts[key] = _Burst(count=1, expires_at=now + self.config.burst_window)
        else:
            burst.count += 1
        return True

    async def cleanup(self, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        cutoff = now - self.config.counter_retention

        stale_buckets = [k for k in self._buckets if k[2] * k[1] < cutoff]
        for k in stale_buckets:
            del self._buckets[k]
        stale_bursts = [k for k, burst in self._bursts.items() if burst.expires_at <= now]
        for k in stale_bursts:
            del self._bursts[k]
        return len(stale_buckets) + len(stale_bursts)

    def counts(self, source: str) -> tuple[int, int, int]:
        """Current (minute, hour, burst) counts for ``source``."""
        key = normalise_source(source)
        now = self._clock()
        burst = self._bursts.get(key)
        return (
            self._buckets.get((key, MINUTE, bucket_index(now, MINUTE)), 0),
            self._buckets.get((key, HOUR, bucket_index(now, HOUR)), 0),
            burst.count if burst is not None and burst.expires_at > now else 0,
        )


# KEYS: counters hash, burst key
# ARGV: minute field, hour field, per_minute, per_hour, burst_size, burst_window_ms
_ADMIT_SCRIPT: Final[str] = """
local minute = tonumber(redis.call('HGET', KEYS[1], ARGV[1]) or '0')
local hour = tonumber(redis.call('HGET', KEYS[1], ARGV[2]) or '0')
local burst = tonumber(redis.call('GET', KEYS[2]) or '0')
if minute >= tonumber(ARGV[3]) or hour >= tonumber(ARGV[4]) or burst >= tonumber(ARGV[5]) then
  return 0
end
redis.call('HINCRBY', KEYS[1], ARGV[1], 1)
redis.call('HINCRBY', KEYS[1], ARGV[2], 1)
if redis.call('INCR', KEYS[2]) == 1 then
  redis.call('PEXPIRE', KEYS[2], ARGV[6])
end
return 1
"""


class RedisRateLimiter(BaseRateLimiter):
    """Limiter whose counters live in Redis, shared by every dispatcher process.

    Minute and hour buckets are fields of one hash; burst counters are
    separate keys so Redis expires them on its own.
    """

    def __init__(
        self,
        client: Redis,
        config: RateLimitConfig,
        *,
        key_prefix: str = "notifications",
        clock: Clock = time.time,
    ) -> None:
        super().__init__(config, clock=clock)
        self._client: Redis = client
        self._hash_key: str = f"{key_prefix}:ratelimit"
        self._admit = client.register_script(_ADMIT_SCRIPT)

    def _burst_key(self, source: str) -> str:
        return f"{self._hash_key}:{source}:burst"

    async def admit(self, source: str) -> bool:
        key = normalise_source(source)
        now = self._clock()
        admitted = await self._admit(
            keys=[self._hash_key, self._burst_key(key)],
            args=[
                f"{key}:minute:{bucket_index(now, MINUTE)}",
                f"{key}:hour:{bucket_index(now, HOUR)}",
                self.config.per_minute,
                self.config.per_hour,
                self.config.burst_size,
                int(self.config.burst_window * 1000),
            ],
        )
        if not admitted:
            logger.debug("Rate limit reached", extra={"source": key})
        return bool(admitted)

    async def cleanup(self, now: float | None = None) -> int:
        now = self._clock() if now is None else now
        cutoff = now - self.config.counter_retention

        stale: list[str] = []
        fields: list[bytes | str] = await self._client.hkeys(self._hash_key)
        for raw_field in fields:
            field = raw_field.decode() if isinstance(raw_field, bytes) else raw_field
            _, _, suffix = field.rpartition(":")
            if ":minute:" in field:
                width = MINUTE
            elif ":hour:" in field:
                width = HOUR
            else:
                continue
            try:
                index = int(suffix)
            except ValueError:
                stale.append(field)
                continue
            if index * width < cutoff:
                stale.append(field)

        if stale:
            _ = await self._client.hdel(self._hash_key, *stale)
        return len(stale)
