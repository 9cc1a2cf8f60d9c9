"""Channel registry mapping each channel to exactly one sink.

The registry is the only place the dispatcher looks up where a channel's
notifications go. Registering a sink for a channel that already has one
replaces it, so collaborators can swap transports at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

from notification_queue.models.enums import Channel
from notification_queue.models.notification import Notification
from notification_queue.types import ChannelSink, ConnectionAware, DeliveryHandler

__all__ = ["CallableSink", "ChannelRegistry"]


@dataclass(slots=True, frozen=True)
class CallableSink:
    """Adapt a plain ``async def handler(notification)`` to :class:`ChannelSink`."""

    handler: DeliveryHandler

    async def deliver(self, notification: Notification) -> None:
        await self.handler(notification)


class ChannelRegistry:
    """One sink per channel."""

    def __init__(self) -> None:
        self._sinks: dict[Channel, ChannelSink] = {}

    def register(self, channel: Channel | str, sink: ChannelSink | DeliveryHandler) -> ChannelSink:
        """Register ``sink`` for ``channel``, replacing any earlier sink.

        Args:
            channel: Channel enum member or its string value
            sink: A :class:`ChannelSink` or a plain async callable

        Returns:
            The sink actually stored (callables come back wrapped)

        Raises:
            TypeError: If ``sink`` is neither a sink nor callable
            ValueError: If ``channel`` is not a known channel name
        """
        key = Channel(channel)
        if isinstance(sink, ChannelSink):
            resolved: ChannelSink = sink
        elif callable(sink):
            resolved = CallableSink(sink)
        else:
            msg = f"Handler for channel {key.value!r} must be a ChannelSink or an async callable"
            raise TypeError(msg)
        self._sinks[key] = resolved
        return resolved

    def unregister(self, channel: Channel | str) -> None:
        """Remove the sink for ``channel`` if one is registered."""
        _ = self._sinks.pop(Channel(channel), None)

    def __contains__(self, channel: Channel) -> bool:
        return channel in self._sinks

    def get(self, channel: Channel) -> ChannelSink | None:
        return self._sinks.get(channel)

    def registered(self) -> frozenset[Channel]:
        return frozenset(self._sinks)

    def connection_counts(self) -> dict[Channel, int]:
        """Live subscriber counts of every connection-aware sink."""
        return {
            channel: sink.connection_count()
            for channel, sink in self._sinks.items()
            if isinstance(sink, ConnectionAware)
        }
