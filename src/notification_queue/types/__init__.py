"""Type definitions and protocols.

This package provides:
- Result and snapshot dataclasses
- Protocol definitions for delivery sinks
- Type aliases (PEP 695 syntax)
"""

from notification_queue.types.aliases import Clock, DeliveryHandler
from notification_queue.types.models import (
    ChannelStats,
    DeliveryOutcome,
    HealthReport,
    QueueSizes,
    StatsSnapshot,
    SweepResult,
)
from notification_queue.types.protocols import ChannelSink, ConnectionAware

__all__ = [
    "ChannelSink",
    "ChannelStats",
    "Clock",
    "ConnectionAware",
    "DeliveryHandler",
    "DeliveryOutcome",
    "HealthReport",
    "QueueSizes",
    "StatsSnapshot",
    "SweepResult",
]
