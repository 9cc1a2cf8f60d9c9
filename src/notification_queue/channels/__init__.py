"""Channel sinks, the channel registry and the delivery router."""

from notification_queue.channels.broadcast import BroadcastSink, BroadcastSubscriber, SubscriberLimitError
from notification_queue.channels.registry import CallableSink, ChannelRegistry
from notification_queue.channels.router import ChannelRouter
from notification_queue.channels.webhook import WebhookDeliveryError, WebhookSink, WebhookStatusError

__all__ = [
    "BroadcastSink",
    "BroadcastSubscriber",
    "CallableSink",
    "ChannelRegistry",
    "ChannelRouter",
    "SubscriberLimitError",
    "WebhookDeliveryError",
    "WebhookSink",
    "WebhookStatusError",
]
