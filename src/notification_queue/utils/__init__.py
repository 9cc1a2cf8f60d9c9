"""Shared utility modules.

This package provides:
- Logging setup with correlation IDs and secret redaction
- Sanitization of URLs, exceptions and structured values
- Human-readable notification titles and bodies
"""

from notification_queue.utils.formatting import (
    humanize_type,
    notification_body,
    notification_path,
    notification_title,
)
from notification_queue.utils.logging import (
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    log_with_context,
    new_correlation_id,
    set_correlation_id,
)
from notification_queue.utils.sanitization import (
    REDACTED,
    sanitize_exception,
    sanitize_url,
    sanitize_value,
)

__all__ = [
    # Formatting
    "humanize_type",
    "notification_body",
    "notification_path",
    "notification_title",
    # Logging
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "log_with_context",
    "new_correlation_id",
    "set_correlation_id",
    # Sanitization
    "REDACTED",
    "sanitize_exception",
    "sanitize_url",
    "sanitize_value",
]
