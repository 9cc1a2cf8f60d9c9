"""Protocol definitions for delivery sinks.

Sinks are the only contract surface with transports: socket and event-stream
servers, push, email and webhook senders, and the audit store all implement
:class:`ChannelSink` and signal failure by raising.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from notification_queue.models.notification import Notification


@runtime_checkable
class ChannelSink(Protocol):
    """Delivers notifications for one channel."""

    async def deliver(self, notification: Notification) -> None:
        """Deliver ``notification``.

        Sinks bound their own timeouts; the router waits as long as the
        sink takes. Redelivery after a crash is possible, so sinks must
        tolerate duplicates.

        Raises:
            Exception: Any exception marks this channel's attempt as failed
        """
        ...


@runtime_checkable
class ConnectionAware(Protocol):
    """Sink with live subscribers (socket and event-stream style channels)."""

    def connection_count(self) -> int:
        """Return the number of currently connected subscribers."""
        ...
