"""Logging setup with correlation IDs and secret redaction.

Every dispatch tick binds a fresh correlation ID so that all log lines for
one batch (claims, channel failures, retries, dead letters) can be grouped
together, even though the deliveries run concurrently in separate tasks.
Log records pass through a redacting filter so webhook tokens and store
credentials never reach a handler.
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
import sys
import uuid
from collections.abc import Mapping
from typing import Final, override

from notification_queue.utils.sanitization import sanitize_args, sanitize_value

# Inherited by tasks spawned with asyncio.gather/create_task
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"

SYSLOG_LOG_FORMAT: Final[str] = (
    "notification-queue[%(process)d]: %(levelname)s - [%(correlation_id)s] - %(name)s - %(message)s"
)

DEFAULT_SYSLOG_ADDRESS: Final[str] = "/dev/log"

_STANDARD_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "correlation_id"}


class CorrelationIDFilter(logging.Filter):
    """Attach the current correlation ID to each record.

    Records emitted outside a dispatch tick get ``"N/A"``.
    """

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = correlation_id_var.get()
        record.correlation_id = correlation_id if correlation_id is not None else "N/A"
        return True


class SecretRedactingFilter(logging.Filter):
    """Redact secrets from the message, its arguments and any ``extra`` fields.

    Examples:
        >>> logger.warning("POST to %s failed", "https://hooks.slack.com/services/T/B/abc")
        # Logged as: "POST to https://hooks.slack.com/services/T/B/<REDACTED> failed"

        >>> logger.info("Store connected", extra={"redis_url": "redis://:pw@cache:6379"})
        # extra sanitized to: {"redis_url": "redis://:<REDACTED>@cache:6379"}
    """

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            sanitized_msg = sanitize_value(record.msg)
            if isinstance(sanitized_msg, str):
                record.msg = sanitized_msg

        if record.args and isinstance(record.args, tuple):
            record.args = sanitize_args(record.args)

        for attr_name in list(record.__dict__):
            if attr_name in _STANDARD_RECORD_ATTRS or attr_name.startswith("_"):
                continue
            attr_value: object = getattr(record, attr_name)
            setattr(record, attr_name, sanitize_value(attr_value, field_name=attr_name))

        return True


def configure_logging(
    *,
    log_level: str = "INFO",
    enable_syslog: bool = False,
    syslog_address: str = DEFAULT_SYSLOG_ADDRESS,
    enable_console: bool = True,
) -> None:
    """Configure root logging for the notification queue service.

    Installs console and (optionally) syslog handlers on the root logger,
    each carrying the correlation ID and secret-redacting filters. Existing
    root handlers are replaced so repeated calls do not duplicate output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_syslog: Forward records to the local syslog socket
        syslog_address: Syslog socket address
        enable_console: Write records to stdout

    Example:
        >>> configure_logging(log_level="DEBUG", enable_syslog=False)
        >>> logging.getLogger("notification_queue").info("ready")
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    correlation_filter = CorrelationIDFilter()
    secret_filter = SecretRedactingFilter()

    if enable_syslog:
        try:
            syslog_handler = logging.handlers.SysLogHandler(
                address=syslog_address,
                facility=logging.handlers.SysLogHandler.LOG_DAEMON,
            )
        except OSError as exc:
            # No syslog socket in containers and dev shells
            print(
                f"Warning: Could not connect to syslog at {syslog_address}: {exc}",
                file=sys.stderr,
            )
        else:
            syslog_handler.setFormatter(logging.Formatter(SYSLOG_LOG_FORMAT))
            syslog_handler.addFilter(correlation_filter)
            syslog_handler.addFilter(secret_filter)
            root_logger.addHandler(syslog_handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        console_handler.addFilter(correlation_filter)
        console_handler.addFilter(secret_filter)
        root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Return the named logger (normally ``__name__``)."""
    return logging.getLogger(name)


def new_correlation_id() -> str:
    """Generate and bind a fresh correlation ID for the current context.

    Returns:
        The generated ID
    """
    correlation_id = uuid.uuid4().hex[:12]
    _ = correlation_id_var.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str) -> None:
    """Bind ``correlation_id`` to the current context."""
    _ = correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    """Return the correlation ID bound to the current context, if any."""
    return correlation_id_var.get()


def clear_correlation_id() -> None:
    """Unbind the correlation ID from the current context."""
    _ = correlation_id_var.set(None)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    extra: Mapping[str, object] | None = None,
) -> None:
    """Log a message with structured context fields.

    Args:
        logger: Logger instance to use
        level: Logging level (e.g., logging.INFO)
        message: Log message
        extra: Additional context fields to include in the record

    Example:
        >>> log_with_context(
        ...     logger,
        ...     logging.WARNING,
        ...     "Channel delivery failed",
        ...     extra={"channel": "email", "item_id": "a1b2", "retry_count": 1},
        ... )
    """
    context = dict(extra) if extra else {}
    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id
    logger.log(level, message, extra=context)
