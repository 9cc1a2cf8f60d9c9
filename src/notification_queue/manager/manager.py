"""Notification manager: the public face of the queue.

The manager wires the store, rate limiter, retry scheduler, router, stats and
dispatcher together from a :class:`NotificationConfig`, admits notifications
into the priority tiers and reports statistics and health. Everything it
builds can be injected instead, which is how tests substitute a fake clock
or a specific store.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from typing import Final

from redis.asyncio import Redis

from notification_queue.channels.registry import ChannelRegistry
from notification_queue.channels.router import ChannelRouter
from notification_queue.config.models import NotificationConfig
from notification_queue.dispatcher import Dispatcher
from notification_queue.errors import AlreadyRunningError, RateLimitExceeded, ValidationError
from notification_queue.events import Enqueued, EventChannel, OutcomeEvent, Subscription
from notification_queue.manager import builders
from notification_queue.models.enums import Channel, NotificationPriority
from notification_queue.models.notification import Notification
from notification_queue.models.payloads import (
    DataProcessingPayload,
    PerformancePayload,
    SecurityPayload,
    ServiceNowPayload,
    SystemPayload,
    TaskPayload,
)
from notification_queue.models.queue_item import QueueItem
from notification_queue.queue.rate_limiter import BaseRateLimiter, RateLimiter, RedisRateLimiter
from notification_queue.queue.retry import RetryScheduler
from notification_queue.queue.store.base import QueueStore
from notification_queue.queue.store.memory_store import MemoryQueueStore
from notification_queue.queue.store.redis_store import RedisQueueStore
from notification_queue.stats import StatsAggregator
from notification_queue.types import ChannelSink, Clock, DeliveryHandler, HealthReport, StatsSnapshot
from notification_queue.utils.logging import get_logger, log_with_context
from notification_queue.utils.sanitization import sanitize_url

__all__ = ["DEFAULT_CHANNELS", "NotificationManager"]

DEFAULT_CHANNELS: Final[dict[NotificationPriority, tuple[Channel, ...]]] = {
    NotificationPriority.CRITICAL: (Channel.SOCKET, Channel.STREAM, Channel.EMAIL, Channel.PUSH),
    NotificationPriority.HIGH: (Channel.SOCKET, Channel.STREAM, Channel.EMAIL),
    NotificationPriority.MEDIUM: (Channel.SOCKET, Channel.STREAM),
    NotificationPriority.LOW: (Channel.SOCKET,),
    NotificationPriority.INFO: (Channel.SOCKET,),
}


class NotificationManager:
    """Admit notifications and run the dispatcher that delivers them.

    Args:
        config: Validated configuration; defaults apply when omitted
        store: Queue store; built from ``config.redis`` when omitted
        rate_limiter: Admission limiter; built from ``config.redis`` when omitted
        registry: Channel registry shared with callers registering sinks
        events: Channel outcome events are published on
        clock: Source of the current time in epoch seconds
    """

    def __init__(
        self,
        config: NotificationConfig | None = None,
        *,
        store: QueueStore | None = None,
        rate_limiter: BaseRateLimiter | None = None,
        registry: ChannelRegistry | None = None,
        events: EventChannel | None = None,
        clock: Clock = time.time,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._config: NotificationConfig = config or NotificationConfig()
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

        redis_client: Redis | None = None
        redis_url = self._config.redis.url
        if redis_url and (store is None or rate_limiter is None):
            redis_client = Redis.from_url(redis_url, decode_responses=True)
            log_with_context(
                self._logger,
                logging.INFO,
                "Using Redis queue backend",
                extra={"redis_url": sanitize_url(redis_url), "key_prefix": self._config.redis.key_prefix},
            )

        self._owns_store: bool = store is None
        # A client built only for the rate limiter is not released by the store
        self._limiter_client: Redis | None = redis_client if store is not None else None
        self._store: QueueStore = store or self._build_store(redis_client)
        self._rate_limiter: BaseRateLimiter = rate_limiter or self._build_rate_limiter(redis_client)
        self._registry: ChannelRegistry = registry or ChannelRegistry()
        self._events: EventChannel = events or EventChannel()
        self._stats: StatsAggregator = StatsAggregator(clock=clock)

        queue_config = self._config.queue
        self._retry: RetryScheduler = RetryScheduler(
            self._store,
            self._events,
            retry_delays=queue_config.retry_delays,
            clock=clock,
        )
        self._router: ChannelRouter = ChannelRouter(self._registry, clock=clock)
        self._dispatcher: Dispatcher = Dispatcher(
            self._store,
            self._router,
            self._retry,
            self._events,
            self._stats,
            queue_config,
            rate_limiter=self._rate_limiter,
            clock=clock,
        )
        self._started_at: float | None = None

    def _build_store(self, redis_client: Redis | None) -> QueueStore:
        max_size = self._config.queue.max_size
        if redis_client is None:
            return MemoryQueueStore(max_size=max_size)
        return RedisQueueStore(redis_client, key_prefix=self._config.redis.key_prefix, max_size=max_size)

    def _build_rate_limiter(self, redis_client: Redis | None) -> BaseRateLimiter:
        if redis_client is None:
            return RateLimiter(self._config.rate_limits, clock=self._clock)
        return RedisRateLimiter(
            redis_client,
            self._config.rate_limits,
            key_prefix=self._config.redis.key_prefix,
            clock=self._clock,
        )

    @property
    def config(self) -> NotificationConfig:
        return self._config

    @property
    def store(self) -> QueueStore:
        return self._store

    @property
    def registry(self) -> ChannelRegistry:
        return self._registry

    @property
    def events(self) -> EventChannel:
        return self._events

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def is_running(self) -> bool:
        return self._dispatcher.is_running

    # Lifecycle

    async def start(self) -> None:
        """Start dispatching.

        Raises:
            AlreadyRunningError: If the manager is already running
        """
        if self.is_running:
            msg = "Notification manager is already running"
            raise AlreadyRunningError(msg)
        await self._dispatcher.start()
        self._started_at = self._clock()
        log_with_context(
            self._logger,
            logging.INFO,
            "Notification manager started",
            extra={"registered_channels": sorted(channel.value for channel in self._registry.registered())},
        )

    async def stop(self) -> None:
        """Stop dispatching; a no-op when not running."""
        if not self.is_running:
            return
        await self._dispatcher.stop()
        self._started_at = None
        self._logger.info("Notification manager stopped")

    async def close(self) -> None:
        """Stop, close every event subscription and release the clients this manager built."""
        await self.stop()
        self._events.close()
        if self._owns_store:
            await self._store.close()
        if self._limiter_client is not None:
            await self._limiter_client.aclose()
            self._limiter_client = None

    # Admission

    async def notify(self, notification: Notification, channels: Iterable[Channel | str] | None = None) -> str:
        """Admit ``notification`` into the tier of its own priority.

        Channels are taken from ``channels`` if given and non-empty, else from
        ``notification.channels``, else from the defaults for its priority.
        Priority defaults are narrowed to the channels with a registered sink
        when at least one of them has one. Channels disabled in configuration
        are dropped.

        Returns:
            The queue item id

        Raises:
            ValidationError: If a required field is blank or no enabled channel remains
            RateLimitExceeded: If the source is over its allowance
            QueueFullError: If the store is at ``max_size``
        """
        return await self.enqueue(notification, channels)

    async def enqueue(
        self,
        notification: Notification,
        channels: Iterable[Channel | str] | None = None,
        priority: NotificationPriority | str | None = None,
    ) -> str:
        """Admit ``notification``, optionally into a different tier.

        ``priority`` only chooses the admission tier; the notification itself
        is stored unchanged and retries return to that tier.
        """
        self._validate(notification)
        resolved = self._resolve_channels(notification, channels)
        tier = NotificationPriority(priority) if priority is not None else notification.priority

        if not await self._rate_limiter.admit(notification.source):
            log_with_context(
                self._logger,
                logging.WARNING,
                "Notification rejected by rate limiter",
                extra={"notification_id": notification.id, "source": notification.source},
            )
            raise RateLimitExceeded(notification.source)

        now = self._clock()
        item = QueueItem(
            notification=notification,
            priority=tier,
            channels=resolved,
            max_retries=self._config.queue.max_retries,
            enqueued_at=now,
            scheduled_at=now,
        )
        await self._store.push(tier, item, at_head=tier.admits_at_head)

        self._stats.record_enqueue(notification.type, tier)
        _ = self._events.publish(
            Enqueued(
                item_id=item.id,
                notification=notification,
                timestamp=now,
                priority=tier,
                channels=resolved,
            )
        )
        log_with_context(
            self._logger,
            logging.DEBUG,
            "Notification enqueued",
            extra={
                "item_id": item.id,
                "notification_id": notification.id,
                "notification_type": str(notification.type),
                "priority": tier.value,
                "channels": [channel.value for channel in resolved],
            },
        )
        return item.id

    def _validate(self, notification: Notification) -> None:
        for field_name, value in (
            ("id", notification.id),
            ("type", str(notification.type)),
            ("source", notification.source),
        ):
            if not value.strip():
                msg = f"Notification must have a non-empty {field_name}"
                raise ValidationError(msg, field=field_name)

    def _resolve_channels(
        self,
        notification: Notification,
        channels: Iterable[Channel | str] | None,
    ) -> tuple[Channel, ...]:
        requested: set[Channel]
        try:
            requested = {Channel(channel) for channel in channels or ()}
        except ValueError as exc:
            raise ValidationError(str(exc), field="channels") from exc
        if not requested:
            requested = set(notification.channels)
        enabled = self._config.channels.enabled_channels()
        if not requested:
            requested = set(DEFAULT_CHANNELS[notification.priority])
            # Defaults only target channels something listens on, unless nothing is registered yet
            registered = self._registry.registered() & requested & enabled
            if registered:
                requested = set(registered)

        resolved = tuple(channel for channel in Channel if channel in requested and channel in enabled)
        if not resolved:
            requested_names = ", ".join(sorted(channel.value for channel in requested))
            msg = f"None of the requested channels are enabled: {requested_names}"
            raise ValidationError(msg, field="channels")
        return resolved

    # Typed constructors

    async def notify_task(
        self,
        payload: TaskPayload | Mapping[str, object],
        *,
        metadata: Mapping[str, object] | None = None,
    ) -> str:
        task = TaskPayload.model_validate(payload)
        return await self.notify(builders.task_notification(task, metadata=metadata))

    async def notify_system(
        self,
        payload: SystemPayload | Mapping[str, object],
        *,
        metadata: Mapping[str, object] | None = None,
    ) -> str:
        system = SystemPayload.model_validate(payload)
        return await self.notify(builders.system_notification(system, metadata=metadata))

    async def notify_servicenow(
        self,
        payload: ServiceNowPayload | Mapping[str, object],
        *,
        metadata: Mapping[str, object] | None = None,
    ) -> str:
        record = ServiceNowPayload.model_validate(payload)
        return await self.notify(builders.servicenow_notification(record, metadata=metadata))

    async def notify_data_processing(
        self,
        payload: DataProcessingPayload | Mapping[str, object],
        *,
        metadata: Mapping[str, object] | None = None,
    ) -> str:
        process = DataProcessingPayload.model_validate(payload)
        return await self.notify(builders.data_processing_notification(process, metadata=metadata))

    async def notify_performance(
        self,
        payload: PerformancePayload | Mapping[str, object],
        *,
        metadata: Mapping[str, object] | None = None,
    ) -> str:
        performance = PerformancePayload.model_validate(payload)
        return await self.notify(builders.performance_notification(performance, metadata=metadata))

    async def notify_security(
        self,
        payload: SecurityPayload | Mapping[str, object],
        event: builders.SecurityEvent,
        *,
        metadata: Mapping[str, object] | None = None,
    ) -> str:
        security = SecurityPayload.model_validate(payload)
        return await self.notify(builders.security_notification(security, event, metadata=metadata))

    # Channels and events

    def register_channel_handler(self, channel: Channel | str, handler: ChannelSink | DeliveryHandler) -> None:
        """Route ``channel`` to ``handler``, replacing any earlier handler."""
        sink = self._registry.register(channel, handler)
        log_with_context(
            self._logger,
            logging.INFO,
            "Channel handler registered",
            extra={"channel": Channel(channel).value, "sink_type": type(sink).__name__},
        )

    def subscribe(self, *kinds: type[OutcomeEvent] | str, maxsize: int = 0) -> Subscription:
        """Subscribe to outcome events, optionally only some kinds."""
        return self._events.subscribe(*kinds, maxsize=maxsize)

    # Reporting

    async def get_stats(self) -> StatsSnapshot:
        return self._stats.snapshot(
            queues=await self._store.sizes(),
            connections=self._registry.connection_counts(),
        )

    def get_health_status(self) -> HealthReport:
        """Running state, uptime and delivery ratios.

        ``success_rate`` is the share of channel deliveries that succeeded,
        between 0 and 1.
        """
        sent = self._stats.total_sent
        failed = self._stats.total_failed
        attempts = sent + failed
        uptime = self._clock() - self._started_at if self.is_running and self._started_at is not None else 0.0
        return HealthReport(
            is_running=self.is_running,
            uptime_seconds=max(uptime, 0.0),
            components={
                "store": True,
                "rate_limiter": True,
                "dispatcher": self._dispatcher.is_running,
                **{channel.value: True for channel in self._registry.registered()},
            },
            total_notifications=self._stats.total_enqueued,
            successful_deliveries=sent,
            failed_deliveries=failed,
            success_rate=sent / attempts if attempts else 0.0,
        )

    def reset_stats(self) -> None:
        self._stats.reset()
