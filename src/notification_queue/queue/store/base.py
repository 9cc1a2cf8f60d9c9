"""Abstract priority queue store.

A store holds every queue item in exactly one area: one of the five
priority tiers, the processing area (claimed by a dispatcher) or the dead
area (retries exhausted). Every method that moves an item between areas is
atomic at the store boundary, which is what lets several dispatcher
processes share one store without double-processing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from notification_queue.models.enums import PRIORITY_ORDER, NotificationPriority
from notification_queue.models.queue_item import QueueItem
from notification_queue.types.models import QueueSizes


@dataclass(slots=True)
class ExpiryResult:
    """Dead items removed by :meth:`QueueStore.expire_dead`."""

    expired: list[QueueItem] = field(default_factory=list)
    malformed: list[str] = field(default_factory=list)


class QueueStore(ABC):
    """Persistent, priority-tiered storage for queue items."""

    def __init__(self, *, max_size: int) -> None:
        self.max_size: int = max_size

    @abstractmethod
    async def push(self, priority: NotificationPriority, item: QueueItem, *, at_head: bool) -> None:
        """Insert a new item into a tier.

        Raises:
            QueueFullError: If the tiers already hold ``max_size`` items
        """

    @abstractmethod
    async def claim_batch(self, priority: NotificationPriority, n: int, now: float) -> list[QueueItem]:
        """Move up to ``n`` due items from the tier's head into processing.

        Items whose ``scheduled_at`` is still in the future are skipped and
        keep their position. Claimed items come back stamped with
        ``claimed_at = now``.
        """

    @abstractmethod
    async def ack(self, item: QueueItem) -> bool:
        """Delete a fully delivered item from processing.

        Returns:
            False if the item was no longer held in processing
        """

    @abstractmethod
    async def requeue(self, item: QueueItem, priority: NotificationPriority) -> bool:
        """Persist ``item`` and move it from processing to the tier's tail."""

    @abstractmethod
    async def to_dead(self, item: QueueItem) -> bool:
        """Persist ``item`` and move it from processing to the dead area."""

    @abstractmethod
    async def size(self, priority: NotificationPriority) -> int: ...

    @abstractmethod
    async def processing_size(self) -> int: ...

    @abstractmethod
    async def dead_size(self) -> int: ...

    @abstractmethod
    async def dead_items(self) -> list[QueueItem]: ...

    @abstractmethod
    async def reclaim_stale(self, older_than: float) -> list[QueueItem]:
        """Return items claimed before ``older_than`` to the tail of their tier.

        Retry counts are left untouched: a stalled claim is not a failed
        delivery.
        """

    @abstractmethod
    async def expire_dead(self, older_than: float) -> ExpiryResult:
        """Delete dead items that failed before ``older_than``.

        Records that cannot be decoded are deleted as well and reported in
        ``ExpiryResult.malformed``.
        """

    async def size_all(self) -> int:
        """Total number of items waiting in the tiers."""
        total = 0
        for priority in PRIORITY_ORDER:
            total += await self.size(priority)
        return total

    async def sizes(self) -> QueueSizes:
        return QueueSizes(
            tiers={priority: await self.size(priority) for priority in PRIORITY_ORDER},
            processing=await self.processing_size(),
            dead=await self.dead_size(),
        )

    async def close(self) -> None:
        """Release connections held by the store."""
