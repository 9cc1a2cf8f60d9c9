"""Concurrent fan-out of one queue item to its channels.

Each channel is delivered in its own task; a failing or crashing sink only
marks its own channel as failed. Every channel delivery appends one
``DeliveryAttempt`` to the item, which is how the dispatcher later decides
between ack, retry and dead-lettering.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

from notification_queue.channels.registry import ChannelRegistry
from notification_queue.errors import ChannelNotRegisteredError, DeliveryError
from notification_queue.models.enums import Channel
from notification_queue.models.notification import Notification
from notification_queue.models.queue_item import DeliveryAttempt, QueueItem
from notification_queue.types import Clock, DeliveryOutcome
from notification_queue.utils.logging import get_logger, log_with_context
from notification_queue.utils.sanitization import sanitize_exception

__all__ = ["ChannelRouter"]


class ChannelRouter:
    """Deliver notifications through the sinks of a :class:`ChannelRegistry`."""

    def __init__(
        self,
        registry: ChannelRegistry,
        *,
        clock: Clock = time.time,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._registry: ChannelRegistry = registry
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @property
    def registry(self) -> ChannelRegistry:
        return self._registry

    async def deliver(self, notification: Notification, channel: Channel) -> None:
        """Deliver one notification to one channel.

        Raises:
            ChannelNotRegisteredError: If no sink is registered for ``channel``
            DeliveryError: Wrapping whatever the sink raised
        """
        sink = self._registry.get(channel)
        if sink is None:
            raise ChannelNotRegisteredError(channel.value)
        try:
            await sink.deliver(notification)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise DeliveryError(channel.value, sanitize_exception(exc)) from exc

    async def deliver_all(self, item: QueueItem, channels: Sequence[Channel]) -> list[DeliveryOutcome]:
        """Deliver ``item`` to every channel in ``channels`` concurrently.

        Appends one attempt per channel to ``item.attempts``; outcomes come
        back in the order of ``channels``.
        """
        outcomes: dict[Channel, DeliveryOutcome] = {}

        async def _deliver_single(channel: Channel) -> None:
            start = time.perf_counter()
            try:
                await self.deliver(item.notification, channel)
            except DeliveryError as exc:
                duration_ms = (time.perf_counter() - start) * 1000.0
                error = str(exc)
                outcomes[channel] = DeliveryOutcome(channel, False, duration_ms, error)
                log_with_context(
                    self._logger,
                    logging.WARNING,
                    "Channel delivery failed",
                    extra={
                        "item_id": item.id,
                        "channel": channel.value,
                        "retry_count": item.retry_count,
                        "error_message": error,
                        "delivery_time_ms": duration_ms,
                    },
                )
            else:
                duration_ms = (time.perf_counter() - start) * 1000.0
                outcomes[channel] = DeliveryOutcome(channel, True, duration_ms)

        async with asyncio.TaskGroup() as task_group:
            for channel in channels:
                _ = task_group.create_task(_deliver_single(channel))

        ordered = [outcomes[channel] for channel in channels]
        now = self._clock()
        for outcome in ordered:
            item.attempts.append(
                DeliveryAttempt(
                    timestamp=now,
                    channel=outcome.channel,
                    success=outcome.success,
                    error=outcome.error,
                )
            )
        return ordered
