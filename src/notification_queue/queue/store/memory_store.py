"""In-process queue store.

Items are kept as encoded records in a single arena keyed by item id; the
tiers, the processing area and the dead area only index into it. Every
method runs without yielding to the event loop, so each move is atomic for
all coroutines in the process. Not shared across processes.
"""

from __future__ import annotations

import logging
from collections import deque

from notification_queue.errors import MalformedItemError, QueueFullError
from notification_queue.models.enums import PRIORITY_ORDER, NotificationPriority
from notification_queue.models.queue_item import QueueItem
from notification_queue.queue.store.base import ExpiryResult, QueueStore

logger = logging.getLogger(__name__)


class MemoryQueueStore(QueueStore):
    """Arena-and-index queue store for single-process deployments and tests."""

    def __init__(self, *, max_size: int = 10_000) -> None:
        super().__init__(max_size=max_size)
        self._records: dict[str, str] = {}
        self._schedule: dict[str, float] = {}
        self._tiers: dict[NotificationPriority, deque[str]] = {p: deque() for p in PRIORITY_ORDER}
        self._processing: dict[str, float] = {}
        self._dead: dict[str, float] = {}

    def _queued_count(self) -> int:
        return sum(len(tier) for tier in self._tiers.values())

    def _forget(self, item_id: str) -> None:
        _ = self._records.pop(item_id, None)
        _ = self._schedule.pop(item_id, None)

    async def push(self, priority: NotificationPriority, item: QueueItem, *, at_head: bool) -> None:
        size = self._queued_count()
        if size >= self.max_size:
            raise QueueFullError(size, self.max_size)
        if item.id in self._records:
            msg = f"Queue item {item.id} is already stored"
            raise ValueError(msg)

        self._records[item.id] = item.encode()
        self._schedule[item.id] = item.scheduled_at
        if at_head:
            self._tiers[priority].appendleft(item.id)
        else:
            self._tiers[priority].append(item.id)

    async def claim_batch(self, priority: NotificationPriority, n: int, now: float) -> list[QueueItem]:
        tier = self._tiers[priority]
        claimed_ids: list[str] = []
        for item_id in tier:
            if len(claimed_ids) >= n:
                break
            if self._schedule.get(item_id, 0.0) <= now:
                claimed_ids.append(item_id)
        if not claimed_ids:
            return []

        taken = set(claimed_ids)
        self._tiers[priority] = deque(item_id for item_id in tier if item_id not in taken)

        items: list[QueueItem] = []
        for item_id in claimed_ids:
            try:
                item = QueueItem.decode(item_id, self._records.get(item_id))
            except MalformedItemError as exc:
                logger.warning("Dropping undecodable queue item on claim: %s", exc, extra={"item_id": item_id})
                self._forget(item_id)
                continue
            item.claimed_at = now
            self._records[item_id] = item.encode()
            self._processing[item_id] = now
            items.append(item)
        return items

    async def ack(self, item: QueueItem) -> bool:
        if self._processing.pop(item.id, None) is None:
            return False
        self._forget(item.id)
        return True

    async def requeue(self, item: QueueItem, priority: NotificationPriority) -> bool:
        if self._processing.pop(item.id, None) is None:
            return False
        item.claimed_at = None
        self._records[item.id] = item.encode()
        self._schedule[item.id] = item.scheduled_at
        self._tiers[priority].append(item.id)
        return True

    async def to_dead(self, item: QueueItem) -> bool:
        if item.failed_at is None:
            msg = f"Queue item {item.id} has no failed_at timestamp"
            raise ValueError(msg)
        if self._processing.pop(item.id, None) is None:
            return False
        self._records[item.id] = item.encode()
        _ = self._schedule.pop(item.id, None)
        self._dead[item.id] = item.failed_at
        return True

    async def size(self, priority: NotificationPriority) -> int:
        return len(self._tiers[priority])

    async def size_all(self) -> int:
        return self._queued_count()

    async def processing_size(self) -> int:
        return len(self._processing)

    async def dead_size(self) -> int:
        return len(self._dead)

    async def dead_items(self) -> list[QueueItem]:
        items: list[QueueItem] = []
        for item_id in self._dead:
            try:
                items.append(QueueItem.decode(item_id, self._records.get(item_id)))
            except MalformedItemError as exc:
                logger.warning("Skipping undecodable dead item: %s", exc, extra={"item_id": item_id})
        return items

    async def reclaim_stale(self, older_than: float) -> list[QueueItem]:
        stale_ids = [item_id for item_id, claimed_at in self._processing.items() if claimed_at < older_than]
        reclaimed: list[QueueItem] = []
        for item_id in stale_ids:
            del self._processing[item_id]
            try:
                item = QueueItem.decode(item_id, self._records.get(item_id))
            except MalformedItemError as exc:
                logger.warning("Dropping undecodable stalled item: %s", exc, extra={"item_id": item_id})
                self._forget(item_id)
                continue
            item.claimed_at = None
            self._records[item_id] = item.encode()
            self._tiers[item.priority].append(item_id)
            reclaimed.append(item)
        return reclaimed

    async def expire_dead(self, older_than: float) -> ExpiryResult:
        result = ExpiryResult()
        expired_ids = [item_id for item_id, failed_at in self._dead.items() if failed_at < older_than]
        for item_id in expired_ids:
            del self._dead[item_id]
            raw = self._records.get(item_id)
            self._forget(item_id)
            try:
                result.expired.append(QueueItem.decode(item_id, raw))
            except MalformedItemError as exc:
                logger.warning("Removed malformed dead item: %s", exc, extra={"item_id": item_id})
                result.malformed.append(item_id)
        return result
