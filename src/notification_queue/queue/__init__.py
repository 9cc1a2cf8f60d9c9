"""Queue storage, admission control and retry scheduling."""

from notification_queue.queue.rate_limiter import BaseRateLimiter, RateLimiter, RedisRateLimiter
from notification_queue.queue.retry import RetryScheduler
from notification_queue.queue.store import ExpiryResult, MemoryQueueStore, QueueStore, RedisQueueStore

__all__ = [
    "BaseRateLimiter",
    "ExpiryResult",
    "MemoryQueueStore",
    "QueueStore",
    "RateLimiter",
    "RedisQueueStore",
    "RedisRateLimiter",
    "RetryScheduler",
]
