"""Redis-backed queue store shared by any number of dispatcher processes.

Layout under ``{prefix}``:

- ``{prefix}:queue:{priority}``: list of item ids per tier, head first
- ``{prefix}:items``: hash of item id to encoded record
- ``{prefix}:schedule``: hash of item id to ``scheduled_at``
- ``{prefix}:processing``: sorted set of claimed ids scored by claim time
- ``{prefix}:dead``: sorted set of dead ids scored by failure time

Every move between areas is a Lua script, so it runs as a single atomic
step on the server. Moves out of processing first remove the id from the
processing set and do nothing if it was already gone, which makes a second
dispatcher's late ack or requeue harmless.
"""

from __future__ import annotations

import logging
from typing import Final, Self

from redis.asyncio import Redis

from notification_queue.errors import MalformedItemError, QueueFullError
from notification_queue.models.enums import PRIORITY_ORDER, NotificationPriority
from notification_queue.models.queue_item import QueueItem
from notification_queue.queue.store.base import ExpiryResult, QueueStore

logger = logging.getLogger(__name__)

# KEYS: 5 tier lists, target tier, items, schedule
# ARGV: id, record, scheduled_at, at_head, max_size
_PUSH_SCRIPT: Final[str] = """
local total = 0
for i = 1, 5 do
  total = total + redis.call('LLEN', KEYS[i])
end
if total >= tonumber(ARGV[5]) then
  return {0, total}
end
if redis.call('HSETNX', KEYS[7], ARGV[1], ARGV[2]) == 0 then
  return {-1, total}
end
redis.call('HSET', KEYS[8], ARGV[1], ARGV[3])
if ARGV[4] == '1' then
  redis.call('LPUSH', KEYS[6], ARGV[1])
else
  redis.call('RPUSH', KEYS[6], ARGV[1])
end
return {1, total}
"""

# KEYS: tier, processing, schedule
# ARGV: now, limit
_CLAIM_SCRIPT: Final[str] = """
local ids = redis.call('LRANGE', KEYS[1], 0, -1)
local now = tonumber(ARGV[1])
local limit = tonumber(ARGV[2])
local claimed = {}
for _, id in ipairs(ids) do
  if #claimed >= limit then
    break
  end
  local due = tonumber(redis.call('HGET', KEYS[3], id) or '0')
  if due <= now then
    redis.call('LREM', KEYS[1], 1, id)
    redis.call('ZADD', KEYS[2], ARGV[1], id)
    claimed[#claimed + 1] = id
  end
end
return claimed
"""

# KEYS: processing, items, schedule
# ARGV: id
_ACK_SCRIPT: Final[str] = """
if redis.call('ZREM', KEYS[1], ARGV[1]) == 0 then
  return 0
end
redis.call('HDEL', KEYS[2], ARGV[1])
redis.call('HDEL', KEYS[3], ARGV[1])
return 1
"""

# KEYS: processing, items, schedule, tier
# ARGV: id, record, scheduled_at
_REQUEUE_SCRIPT: Final[str] = """
if redis.call('ZREM', KEYS[1], ARGV[1]) == 0 then
  return 0
end
redis.call('HSET', KEYS[2], ARGV[1], ARGV[2])
redis.call('HSET', KEYS[3], ARGV[1], ARGV[3])
redis.call('RPUSH', KEYS[4], ARGV[1])
return 1
"""

# KEYS: processing, items, schedule, dead
# ARGV: id, record, failed_at
_DEAD_SCRIPT: Final[str] = """
if redis.call('ZREM', KEYS[1], ARGV[1]) == 0 then
  return 0
end
redis.call('HSET', KEYS[2], ARGV[1], ARGV[2])
redis.call('HDEL', KEYS[3], ARGV[1])
redis.call('ZADD', KEYS[4], ARGV[3], ARGV[1])
return 1
"""

# KEYS: dead, items
# ARGV: id
_EXPIRE_SCRIPT: Final[str] = """
if redis.call('ZREM', KEYS[1], ARGV[1]) == 0 then
  return 0
end
redis.call('HDEL', KEYS[2], ARGV[1])
return 1
"""


def _text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisQueueStore(QueueStore):
    """Queue store on a Redis server."""

    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "notifications",
        max_size: int = 10_000,
    ) -> None:
        super().__init__(max_size=max_size)
        self._client: Redis = client
        self._prefix: str = key_prefix
        self._items_key: str = f"{key_prefix}:items"
        self._schedule_key: str = f"{key_prefix}:schedule"
        self._processing_key: str = f"{key_prefix}:processing"
        self._dead_key: str = f"{key_prefix}:dead"

        self._push_script = client.register_script(_PUSH_SCRIPT)
        self._claim_script = client.register_script(_CLAIM_SCRIPT)
        self._ack_script = client.register_script(_ACK_SCRIPT)
        self._requeue_script = client.register_script(_REQUEUE_SCRIPT)
        self._dead_script = client.register_script(_DEAD_SCRIPT)
        self._expire_script = client.register_script(_EXPIRE_SCRIPT)

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "notifications", max_size: int = 10_000) -> Self:
        return cls(Redis.from_url(url, decode_responses=True), key_prefix=key_prefix, max_size=max_size)

    def tier_key(self, priority: NotificationPriority) -> str:
        return f"{self._prefix}:queue:{priority.value}"

    async def push(self, priority: NotificationPriority, item: QueueItem, *, at_head: bool) -> None:
        status, total = await self._push_script(
            keys=[
                *(self.tier_key(p) for p in PRIORITY_ORDER),
                self.tier_key(priority),
                self._items_key,
                self._schedule_key,
            ],
            args=[item.id, item.encode(), repr(item.scheduled_at), "1" if at_head else "0", self.max_size],
        )
        if int(status) == 0:
            raise QueueFullError(int(total), self.max_size)
        if int(status) < 0:
            msg = f"Queue item {item.id} is already stored"
            raise ValueError(msg)

    async def claim_batch(self, priority: NotificationPriority, n: int, now: float) -> list[QueueItem]:
        raw_ids: list[bytes | str] = await self._claim_script(
            keys=[self.tier_key(priority), self._processing_key, self._schedule_key],
            args=[repr(now), n],
        )
        if not raw_ids:
            return []

        ids = [_text(raw_id) for raw_id in raw_ids]
        records: list[bytes | str | None] = await self._client.hmget(self._items_key, ids)

        items: list[QueueItem] = []
        async with self._client.pipeline(transaction=True) as pipe:
            for item_id, raw in zip(ids, records, strict=True):
                try:
                    item = QueueItem.decode(item_id, raw)
                except MalformedItemError as exc:
                    logger.warning("Dropping undecodable queue item on claim: %s", exc, extra={"item_id": item_id})
                    _ = pipe.zrem(self._processing_key, item_id)
                    _ = pipe.hdel(self._items_key, item_id)
                    _ = pipe.hdel(self._schedule_key, item_id)
                    continue
                item.claimed_at = now
                _ = pipe.hset(self._items_key, item_id, item.encode())
                items.append(item)
            _ = await pipe.execute()
        return items

    async def ack(self, item: QueueItem) -> bool:
        removed = await self._ack_script(
            keys=[self._processing_key, self._items_key, self._schedule_key],
            args=[item.id],
        )
        return bool(removed)

    async def requeue(self, item: QueueItem, priority: NotificationPriority) -> bool:
        item.claimed_at = None
        moved = await self._requeue_script(
            keys=[self._processing_key, self._items_key, self._schedule_key, self.tier_key(priority)],
            args=[item.id, item.encode(), repr(item.scheduled_at)],
        )
        return bool(moved)

    async def to_dead(self, item: QueueItem) -> bool:
        if item.failed_at is None:
            msg = f"Queue item {item.id} has no failed_at timestamp"
            raise ValueError(msg)
        moved = await self._dead_script(
            keys=[self._processing_key, self._items_key, self._schedule_key, self._dead_key],
            args=[item.id, item.encode(), repr(item.failed_at)],
        )
        return bool(moved)

    async def size(self, priority: NotificationPriority) -> int:
        return int(await self._client.llen(self.tier_key(priority)))

    async def size_all(self) -> int:
        async with self._client.pipeline(transaction=False) as pipe:
            for priority in PRIORITY_ORDER:
                _ = pipe.llen(self.tier_key(priority))
            lengths: list[int] = await pipe.execute()
        return sum(int(length) for length in lengths)

    async def processing_size(self) -> int:
        return int(await self._client.zcard(self._processing_key))

    async def dead_size(self) -> int:
        return int(await self._client.zcard(self._dead_key))

    async def dead_items(self) -> list[QueueItem]:
        ids = [_text(raw_id) for raw_id in await self._client.zrange(self._dead_key, 0, -1)]
        if not ids:
            return []
        records: list[bytes | str | None] = await self._client.hmget(self._items_key, ids)
        items: list[QueueItem] = []
        for item_id, raw in zip(ids, records, strict=True):
            try:
                items.append(QueueItem.decode(item_id, raw))
            except MalformedItemError as exc:
                logger.warning("Skipping undecodable dead item: %s", exc, extra={"item_id": item_id})
        return items

    async def reclaim_stale(self, older_than: float) -> list[QueueItem]:
        stale = await self._client.zrangebyscore(self._processing_key, "-inf", f"({older_than!r}")
        reclaimed: list[QueueItem] = []
        for raw_id in stale:
            item_id = _text(raw_id)
            raw = await self._client.hget(self._items_key, item_id)
            try:
                item = QueueItem.decode(item_id, raw)
            except MalformedItemError as exc:
                logger.warning("Dropping undecodable stalled item: %s", exc, extra={"item_id": item_id})
                _ = await self._ack_script(
                    keys=[self._processing_key, self._items_key, self._schedule_key],
                    args=[item_id],
                )
                continue
            if await self.requeue(item, item.priority):
                reclaimed.append(item)
        return reclaimed

    async def expire_dead(self, older_than: float) -> ExpiryResult:
        result = ExpiryResult()
        expired = await self._client.zrangebyscore(self._dead_key, "-inf", f"({older_than!r}")
        for raw_id in expired:
            item_id = _text(raw_id)
            raw = await self._client.hget(self._items_key, item_id)
            removed = await self._expire_script(keys=[self._dead_key, self._items_key], args=[item_id])
            if not removed:
                continue
            try:
                result.expired.append(QueueItem.decode(item_id, raw))
            except MalformedItemError as exc:
                logger.warning("Removed malformed dead item: %s", exc, extra={"item_id": item_id})
                result.malformed.append(item_id)
        return result

    async def close(self) -> None:
        await self._client.aclose()
