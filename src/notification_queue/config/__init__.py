"""Configuration models and loading."""

from notification_queue.config.env_loader import EnvLoader
from notification_queue.config.exceptions import (
    ConfigurationError,
    EnvironmentVariableError,
    EnvLoadError,
)
from notification_queue.config.loader import load_config, resolve_env_var, resolve_env_vars
from notification_queue.config.models import (
    ChannelsConfig,
    ChannelToggle,
    LoggingConfig,
    NotificationConfig,
    QueueConfig,
    RateLimitConfig,
    RedisConfig,
    WebhookConfig,
)

__all__ = [
    "ChannelToggle",
    "ChannelsConfig",
    "ConfigurationError",
    "EnvLoadError",
    "EnvLoader",
    "EnvironmentVariableError",
    "LoggingConfig",
    "NotificationConfig",
    "QueueConfig",
    "RateLimitConfig",
    "RedisConfig",
    "WebhookConfig",
    "load_config",
    "resolve_env_var",
    "resolve_env_vars",
]
