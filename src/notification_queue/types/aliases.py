"""Type aliases using PEP 695 syntax."""

from collections.abc import Awaitable, Callable

from notification_queue.models.notification import Notification

type Clock = Callable[[], float]
"""Wall-clock source returning epoch seconds; injectable for tests."""

type DeliveryHandler = Callable[[Notification], Awaitable[None]]
"""Plain async callable accepted wherever a sink is registered."""
