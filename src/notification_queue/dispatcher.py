"""Dispatcher draining the priority tiers into channel sinks.

Two independent loops run while the dispatcher is started. The processing
loop calls :meth:`Dispatcher.tick` every ``processing_interval`` seconds and
the sweep loop calls :meth:`Dispatcher.sweep` every ``cleanup_interval``
seconds. Each loop awaits its job before waiting for the next interval, so
a tick never overlaps the next one.

Within a tick the tiers are drained strictly in priority order. All items
claimed from one tier are processed concurrently, and each item fans out to
its remaining channels concurrently.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable

from notification_queue.channels.router import ChannelRouter
from notification_queue.config.models import QueueConfig
from notification_queue.errors import AlreadyRunningError, ExhaustedRetriesError
from notification_queue.events import (
    Completed,
    Delivered,
    DeliveryFailed,
    EventChannel,
    Expired,
    Failed,
)
from notification_queue.models.enums import PRIORITY_ORDER
from notification_queue.models.queue_item import QueueItem
from notification_queue.queue.rate_limiter import BaseRateLimiter
from notification_queue.queue.retry import RetryScheduler
from notification_queue.queue.store.base import QueueStore
from notification_queue.stats import StatsAggregator
from notification_queue.types import Clock, DeliveryOutcome, SweepResult
from notification_queue.utils.logging import (
    clear_correlation_id,
    get_logger,
    log_with_context,
    new_correlation_id,
)
from notification_queue.utils.sanitization import sanitize_exception

__all__ = ["Dispatcher"]


class Dispatcher:
    """Claim, deliver and settle queue items."""

    def __init__(
        self,
        store: QueueStore,
        router: ChannelRouter,
        retry: RetryScheduler,
        events: EventChannel,
        stats: StatsAggregator,
        config: QueueConfig,
        *,
        rate_limiter: BaseRateLimiter | None = None,
        clock: Clock = time.time,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._store: QueueStore = store
        self._router: ChannelRouter = router
        self._retry: RetryScheduler = retry
        self._events: EventChannel = events
        self._stats: StatsAggregator = stats
        self._config: QueueConfig = config
        self._rate_limiter: BaseRateLimiter | None = rate_limiter
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

        self._stop_event: asyncio.Event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start the processing and sweep loops.

        Raises:
            AlreadyRunningError: If the loops are already running
        """
        if self._tasks:
            msg = "Dispatcher is already running"
            raise AlreadyRunningError(msg)

        self._stop_event.clear()
        self._tasks = [
            asyncio.create_task(
                self._run_periodically("tick", self._config.processing_interval, self.tick, run_first=True),
                name="notification-dispatch",
            ),
            asyncio.create_task(
                self._run_periodically("sweep", self._config.cleanup_interval, self.sweep, run_first=False),
                name="notification-sweep",
            ),
        ]
        log_with_context(
            self._logger,
            logging.INFO,
            "Dispatcher started",
            extra={
                "processing_interval": self._config.processing_interval,
                "cleanup_interval": self._config.cleanup_interval,
                "batch_size": self._config.batch_size,
            },
        )

    async def stop(self) -> None:
        """Signal both loops and wait for the running job to settle.

        In-flight deliveries are never cancelled. Calling ``stop`` on a
        stopped dispatcher does nothing.
        """
        if not self._tasks:
            return
        self._stop_event.set()
        tasks, self._tasks = self._tasks, []
        _ = await asyncio.gather(*tasks)
        self._logger.info("Dispatcher stopped")

    async def _run_periodically(
        self,
        name: str,
        interval: float,
        job: Callable[[], Awaitable[object]],
        *,
        run_first: bool,
    ) -> None:
        if not run_first:
            with contextlib.suppress(TimeoutError):
                _ = await asyncio.wait_for(self._stop_event.wait(), interval)

        while not self._stop_event.is_set():
            try:
                _ = await job()
            except Exception:
                self._logger.exception("Dispatcher %s failed", name)
            with contextlib.suppress(TimeoutError):
                _ = await asyncio.wait_for(self._stop_event.wait(), interval)

    async def tick(self) -> int:
        """Drain up to ``batch_size`` due items from each tier, highest first.

        Returns:
            Number of items claimed during this tick
        """
        _ = new_correlation_id()
        claimed = 0
        try:
            for priority in PRIORITY_ORDER:
                try:
                    items = await self._store.claim_batch(priority, self._config.batch_size, self._clock())
                except Exception:
                    self._logger.exception("Failed to claim items from tier %s", priority.value)
                    continue
                if not items:
                    continue

                claimed += len(items)
                async with asyncio.TaskGroup() as task_group:
                    for item in items:
                        _ = task_group.create_task(self._process_safely(item))
        finally:
            clear_correlation_id()
        return claimed

    async def _process_safely(self, item: QueueItem) -> None:
        try:
            await self._process_item(item)
        except Exception:
            # Left in processing; the sweep reclaims it after processing_timeout
            self._logger.exception(
                "Failed to settle queue item",
                extra={"item_id": item.id, "retry_count": item.retry_count},
            )

    async def _process_item(self, item: QueueItem) -> None:
        channels = item.remaining_channels()
        start = time.perf_counter()
        outcomes = await self._router.deliver_all(item, channels) if channels else []
        duration_ms = (time.perf_counter() - start) * 1000.0
        self._record_outcomes(item, outcomes)

        if all(outcome.success for outcome in outcomes):
            await self._complete(item, duration_ms)
        elif item.retry_count < item.max_retries:
            _ = await self._retry.schedule_retry(item)
        else:
            await self._dead_letter(item)

    def _record_outcomes(self, item: QueueItem, outcomes: list[DeliveryOutcome]) -> None:
        now = self._clock()
        notification = item.notification
        for outcome in outcomes:
            self._stats.record_delivery(outcome.channel, notification.type, outcome.success, outcome.duration_ms)
            if outcome.success:
                event = Delivered(
                    item_id=item.id,
                    notification=notification,
                    timestamp=now,
                    channel=outcome.channel,
                    duration_ms=outcome.duration_ms,
                )
            else:
                event = DeliveryFailed(
                    item_id=item.id,
                    notification=notification,
                    timestamp=now,
                    channel=outcome.channel,
                    error=outcome.error or "unknown error",
                )
            _ = self._events.publish(event)

    async def _complete(self, item: QueueItem, duration_ms: float) -> None:
        if not await self._store.ack(item):
            log_with_context(
                self._logger,
                logging.WARNING,
                "Ack skipped: item is no longer held in processing",
                extra={"item_id": item.id},
            )
            return

        now = self._clock()
        self._stats.record_processing_duration(duration_ms)
        _ = self._events.publish(
            Completed(
                item_id=item.id,
                notification=item.notification,
                timestamp=now,
                duration_ms=duration_ms,
                retry_count=item.retry_count,
                attempts=tuple(item.attempts),
            )
        )
        log_with_context(
            self._logger,
            logging.DEBUG,
            "Notification delivered to all channels",
            extra={"item_id": item.id, "retry_count": item.retry_count, "duration_ms": duration_ms},
        )

    async def _dead_letter(self, item: QueueItem) -> None:
        now = self._clock()
        item.failed_at = now
        if not await self._store.to_dead(item):
            log_with_context(
                self._logger,
                logging.WARNING,
                "Dead-letter skipped: item is no longer held in processing",
                extra={"item_id": item.id},
            )
            return

        error = ExhaustedRetriesError(item.id, item.retry_count, item.last_errors())
        _ = self._events.publish(
            Failed(
                item_id=item.id,
                notification=item.notification,
                timestamp=now,
                retry_count=item.retry_count,
                attempts=tuple(item.attempts),
                error=error,
            )
        )
        log_with_context(
            self._logger,
            logging.ERROR,
            "Notification moved to dead letter area",
            extra={
                "item_id": item.id,
                "notification_type": str(item.notification.type),
                "retry_count": item.retry_count,
                "failed_channels": [channel.value for channel in item.remaining_channels()],
                "error_message": str(error),
            },
        )

    async def sweep(self) -> SweepResult:
        """Reclaim stalled claims, expire old dead items and prune rate counters.

        Each step runs even if an earlier one failed; failures are logged and
        listed in ``SweepResult.errors``.
        """
        result = SweepResult()
        now = self._clock()

        try:
            reclaimed = await self._store.reclaim_stale(now - self._config.processing_timeout)
        except Exception as exc:
            self._logger.exception("Stale claim reclaim failed")
            result.errors.append(sanitize_exception(exc))
        else:
            result.reclaimed = len(reclaimed)

        try:
            expiry = await self._store.expire_dead(now - self._config.dead_retention)
        except Exception as exc:
            self._logger.exception("Dead item expiry failed")
            result.errors.append(sanitize_exception(exc))
        else:
            result.expired = len(expiry.expired)
            result.malformed = len(expiry.malformed)
            for item in expiry.expired:
                _ = self._events.publish(
                    Expired(
                        item_id=item.id,
                        notification=item.notification,
                        timestamp=now,
                        failed_at=item.failed_at,
                    )
                )

        if self._rate_limiter is not None:
            try:
                result.rate_counters_removed = await self._rate_limiter.cleanup(now)
            except Exception as exc:
                self._logger.exception("Rate limit counter cleanup failed")
                result.errors.append(sanitize_exception(exc))

        changed = result.reclaimed or result.expired or result.malformed or result.rate_counters_removed
        log_with_context(
            self._logger,
            logging.INFO if changed or result.errors else logging.DEBUG,
            "Sweep completed",
            extra={
                "reclaimed": result.reclaimed,
                "expired": result.expired,
                "malformed": result.malformed,
                "rate_counters_removed": result.rate_counters_removed,
                "error_count": len(result.errors),
            },
        )
        return result
