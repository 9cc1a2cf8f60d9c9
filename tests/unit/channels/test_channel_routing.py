"""Tests for the channel registry and router."""

from __future__ import annotations

import asyncio
import logging

import pytest
from _pytest.logging import LogCaptureFixture
from doubles import FakeClock, NotificationFactory, QueueItemFactory, RecordingSink

from notification_queue.channels.broadcast import BroadcastSink
from notification_queue.channels.registry import CallableSink, ChannelRegistry
from notification_queue.channels.router import ChannelRouter
from notification_queue.errors import ChannelNotRegisteredError, DeliveryError
from notification_queue.models.enums import Channel
from notification_queue.models.notification import Notification
from notification_queue.types import DeliveryHandler


class TestChannelRegistry:
    def test_sink_is_stored_as_is(self) -> None:
        registry = ChannelRegistry()
        sink = RecordingSink()

        stored = registry.register(Channel.EMAIL, sink)

        assert stored is sink
        assert Channel.EMAIL in registry
        assert registry.get(Channel.EMAIL) is sink

    @pytest.mark.asyncio
    async def test_callable_is_wrapped(self, make_notification: NotificationFactory) -> None:
        registry = ChannelRegistry()
        received: list[Notification] = []

        async def handler(notification: Notification) -> None:
            received.append(notification)

        stored = registry.register("push", handler)
        notification = make_notification()
        await stored.deliver(notification)

        assert isinstance(stored, CallableSink)
        assert received == [notification]
        assert registry.registered() == frozenset({Channel.PUSH})

    def test_non_callable_is_rejected(self) -> None:
        registry = ChannelRegistry()

        with pytest.raises(TypeError, match="push"):
            _ = registry.register(Channel.PUSH, "not a sink")  # pyright: ignore[reportArgumentType]

    def test_unknown_channel_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            _ = ChannelRegistry().register("pager", RecordingSink())

    def test_register_replaces_and_unregister_removes(self) -> None:
        registry = ChannelRegistry()
        first = RecordingSink()
        second = RecordingSink()
        _ = registry.register(Channel.AUDIT, first)
        _ = registry.register(Channel.AUDIT, second)

        assert registry.get(Channel.AUDIT) is second

        registry.unregister("audit")
        registry.unregister(Channel.AUDIT)

        assert registry.get(Channel.AUDIT) is None
        assert registry.registered() == frozenset()

    def test_connection_counts_only_cover_connection_aware_sinks(self) -> None:
        registry = ChannelRegistry()
        socket = BroadcastSink("socket")
        _ = socket.connect()
        _ = registry.register(Channel.SOCKET, socket)
        _ = registry.register(Channel.STREAM, BroadcastSink("stream"))
        _ = registry.register(Channel.EMAIL, RecordingSink())

        assert registry.connection_counts() == {Channel.SOCKET: 1, Channel.STREAM: 0}


class TestChannelRouter:
    @pytest.mark.asyncio
    async def test_deliver_to_unregistered_channel(self, make_notification: NotificationFactory) -> None:
        router = ChannelRouter(ChannelRegistry())

        with pytest.raises(ChannelNotRegisteredError) as exc_info:
            await router.deliver(make_notification(), Channel.PUSH)

        assert exc_info.value.channel == "push"

    @pytest.mark.asyncio
    async def test_sink_error_is_wrapped_and_sanitized(self, make_notification: NotificationFactory) -> None:
        registry = ChannelRegistry()

        async def leaky(notification: Notification) -> None:
            msg = "POST https://hooks.example.com/notify?token=s3cret failed"
            raise ConnectionError(msg)

        _ = registry.register(Channel.WEBHOOK, leaky)
        router = ChannelRouter(registry)

        with pytest.raises(DeliveryError) as exc_info:
            await router.deliver(make_notification(), Channel.WEBHOOK)

        assert exc_info.value.channel == "webhook"
        assert "s3cret" not in str(exc_info.value)
        assert str(exc_info.value).startswith("ConnectionError: ")
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_deliver_all_records_attempts_in_channel_order(
        self,
        make_item: QueueItemFactory,
        clock: FakeClock,
        caplog: LogCaptureFixture,
    ) -> None:
        registry = ChannelRegistry()
        _ = registry.register(Channel.SOCKET, RecordingSink(delay=0.02))
        _ = registry.register(Channel.EMAIL, RecordingSink(always_fail=True))
        router = ChannelRouter(registry, clock=clock)
        item = make_item(channels=(Channel.SOCKET, Channel.EMAIL))
        caplog.set_level(logging.WARNING)

        outcomes = await router.deliver_all(item, item.channels)

        assert [(o.channel, o.success) for o in outcomes] == [(Channel.SOCKET, True), (Channel.EMAIL, False)]
        assert outcomes[0].duration_ms >= 0.0
        assert outcomes[1].error is not None
        assert "sink unavailable" in outcomes[1].error
        assert [(a.channel, a.success) for a in item.attempts] == [(Channel.SOCKET, True), (Channel.EMAIL, False)]
        assert all(a.timestamp == clock.now for a in item.attempts)
        assert item.attempts[0].error is None
        failures = [r for r in caplog.records if r.message == "Channel delivery failed"]
        assert len(failures) == 1

    @pytest.mark.asyncio
    async def test_deliveries_run_concurrently(self, make_item: QueueItemFactory) -> None:
        registry = ChannelRegistry()
        started: list[Channel] = []
        gate = asyncio.Event()

        def blocking(channel: Channel) -> DeliveryHandler:
            async def handler(notification: Notification) -> None:
                started.append(channel)
                if len(started) == 2:
                    gate.set()
                await gate.wait()

            return handler

        _ = registry.register(Channel.SOCKET, blocking(Channel.SOCKET))
        _ = registry.register(Channel.STREAM, blocking(Channel.STREAM))
        router = ChannelRouter(registry)
        item = make_item(channels=(Channel.SOCKET, Channel.STREAM))

        async with asyncio.timeout(1):
            outcomes = await router.deliver_all(item, item.channels)

        assert all(outcome.success for outcome in outcomes)
        assert sorted(started) == [Channel.SOCKET, Channel.STREAM]

    @pytest.mark.asyncio
    async def test_empty_channel_list(self, make_item: QueueItemFactory) -> None:
        router = ChannelRouter(ChannelRegistry())
        item = make_item()

        assert await router.deliver_all(item, ()) == []
        assert item.attempts == []
