"""Delivery statistics accumulated for the lifetime of a manager."""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass

from notification_queue.models.enums import Channel, NotificationPriority, NotificationType
from notification_queue.types.aliases import Clock
from notification_queue.types.models import ChannelStats, QueueSizes, StatsSnapshot


@dataclass(slots=True)
class RunningMean:
    """Incremental arithmetic mean; keeps no history."""

    count: int = 0
    mean: float = 0.0

    def add(self, value: float) -> float:
        self.count += 1
        self.mean += (value - self.mean) / self.count
        return self.mean


@dataclass(slots=True)
class _ChannelCounters:
    sent: int = 0
    failed: int = 0
    delivery_time: RunningMean | None = None

    def freeze(self) -> ChannelStats:
        avg = self.delivery_time.mean if self.delivery_time is not None else 0.0
        return ChannelStats(sent=self.sent, failed=self.failed, avg_delivery_ms=avg)


class StatsAggregator:
    """Counts enqueues and deliveries by channel, type and priority.

    Counters only grow until :meth:`reset`. Error rate is derived from the
    lifetime totals each time a snapshot is taken.
    """

    def __init__(self, *, clock: Clock = time.time) -> None:
        self._clock: Clock = clock
        self.reset()

    def reset(self) -> None:
        self._sent: int = 0
        self._failed: int = 0
        self._enqueued: int = 0
        self._by_type: Counter[str] = Counter()
        self._by_priority: Counter[NotificationPriority] = Counter()
        self._by_channel: dict[Channel, _ChannelCounters] = {}
        self._processing_time: RunningMean = RunningMean()

    @property
    def total_enqueued(self) -> int:
        return self._enqueued

    @property
    def total_sent(self) -> int:
        return self._sent

    @property
    def total_failed(self) -> int:
        return self._failed

    def record_enqueue(self, notification_type: NotificationType | str, priority: NotificationPriority) -> None:
        self._enqueued += 1
        self._by_type[str(notification_type)] += 1
        self._by_priority[priority] += 1

    def record_delivery(
        self,
        channel: Channel,
        notification_type: NotificationType | str,
        success: bool,
        duration_ms: float | None = None,
    ) -> None:
        """Count one channel delivery attempt.

        Args:
            channel: Channel the attempt targeted
            notification_type: Type of the delivered notification
            success: Whether the sink accepted the notification
            duration_ms: Time the sink took, folded into the channel average
        """
        counters = self._by_channel.setdefault(channel, _ChannelCounters())
        if success:
            self._sent += 1
            counters.sent += 1
        else:
            self._failed += 1
            counters.failed += 1
        if duration_ms is not None:
            if counters.delivery_time is None:
                counters.delivery_time = RunningMean()
            _ = counters.delivery_time.add(duration_ms)

    def record_processing_duration(self, duration_ms: float) -> None:
        _ = self._processing_time.add(duration_ms)

    def error_rate(self) -> float:
        attempts = self._sent + self._failed
        return self._failed / attempts if attempts else 0.0

    def snapshot(
        self,
        *,
        queues: QueueSizes | None = None,
        connections: Mapping[Channel, int] | None = None,
    ) -> StatsSnapshot:
        """Freeze the current counters.

        Args:
            queues: Current store sizes; drive ``pending`` and ``queue_size``
            connections: Live subscriber counts of connection-aware sinks
        """
        queue_size = queues.queued if queues is not None else 0
        pending = queue_size + queues.processing if queues is not None else 0
        return StatsSnapshot(
            sent=self._sent,
            failed=self._failed,
            pending=pending,
            by_channel={channel: counters.freeze() for channel, counters in self._by_channel.items()},
            by_type=dict(self._by_type),
            by_priority={priority: self._by_priority.get(priority, 0) for priority in NotificationPriority},
            connections=dict(connections or {}),
            avg_processing_ms=self._processing_time.mean,
            queue_size=queue_size,
            error_rate=self.error_rate(),
            generated_at=self._clock(),
            queues=queues,
        )
