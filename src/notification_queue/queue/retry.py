"""Retry scheduling with a step table of delays."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from notification_queue.events import EventChannel, RetryScheduled
from notification_queue.models.queue_item import QueueItem
from notification_queue.queue.store.base import QueueStore
from notification_queue.types.aliases import Clock
from notification_queue.utils.logging import get_logger, log_with_context

__all__ = ["RetryScheduler"]


class RetryScheduler:
    """Put failed items back into their tier after a delay.

    The delay for an item is looked up by its current retry count in
    ``retry_delays``; counts past the end of the table reuse the last entry.

    Args:
        store: Store the items are requeued into
        events: Channel that receives ``RetryScheduled`` events
        retry_delays: Delay in seconds per retry, first retry first
        clock: Source of the current time in epoch seconds
    """

    def __init__(
        self,
        store: QueueStore,
        events: EventChannel,
        *,
        retry_delays: Sequence[float],
        clock: Clock = time.time,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if not retry_delays:
            msg = "retry_delays must contain at least one delay"
            raise ValueError(msg)
        if any(delay < 0 for delay in retry_delays):
            msg = "retry_delays must not contain negative delays"
            raise ValueError(msg)

        self._store: QueueStore = store
        self._events: EventChannel = events
        self._delays: tuple[float, ...] = tuple(retry_delays)
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @property
    def retry_delays(self) -> tuple[float, ...]:
        return self._delays

    def compute_delay(self, retry_count: int) -> float:
        """Delay before the retry that follows ``retry_count`` earlier retries.

        Examples:
            >>> scheduler.compute_delay(0)  # with retry_delays=[1, 5, 15]
            1
            >>> scheduler.compute_delay(7)
            15
        """
        return self._delays[min(max(retry_count, 0), len(self._delays) - 1)]

    async def schedule_retry(self, item: QueueItem) -> float:
        """Increment the retry count and requeue ``item`` into its admission tier.

        Returns:
            The delay applied, in seconds

        Raises:
            ValueError: If the item has no retries left
        """
        if item.retry_count >= item.max_retries:
            msg = f"Queue item {item.id} has no retries left ({item.retry_count}/{item.max_retries})"
            raise ValueError(msg)

        delay = self.compute_delay(item.retry_count)
        now = self._clock()
        item.retry_count += 1
        item.scheduled_at = now + delay

        if not await self._store.requeue(item, item.priority):
            log_with_context(
                self._logger,
                logging.WARNING,
                "Retry skipped: item is no longer held in processing",
                extra={"item_id": item.id, "retry_count": item.retry_count},
            )
            return delay

        remaining = item.remaining_channels()
        _ = self._events.publish(
            RetryScheduled(
                item_id=item.id,
                notification=item.notification,
                timestamp=now,
                delay=delay,
                retry_count=item.retry_count,
                scheduled_at=item.scheduled_at,
                channels=remaining,
            )
        )
        log_with_context(
            self._logger,
            logging.INFO,
            "Retry scheduled",
            extra={
                "item_id": item.id,
                "retry_count": item.retry_count,
                "max_retries": item.max_retries,
                "delay_seconds": delay,
                "channels": [channel.value for channel in remaining],
            },
        )
        return delay
