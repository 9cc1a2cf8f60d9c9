"""Priority-tiered queue stores."""

from notification_queue.queue.store.base import ExpiryResult, QueueStore
from notification_queue.queue.store.memory_store import MemoryQueueStore
from notification_queue.queue.store.redis_store import RedisQueueStore

__all__ = [
    "ExpiryResult",
    "MemoryQueueStore",
    "QueueStore",
    "RedisQueueStore",
]
