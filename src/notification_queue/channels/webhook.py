"""Webhook sink posting notifications as JSON over HTTP.

Targets are the configured URLs plus any URLs listed in the notification's
``metadata["webhooks"]``. A notification counts as delivered only when every
target answered with a 2xx status; otherwise the sink raises and the whole
channel is retried, so receivers must tolerate duplicates.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Final, Self

import aiohttp

from notification_queue.models.notification import Notification
from notification_queue.utils.formatting import notification_body, notification_path, notification_title
from notification_queue.utils.sanitization import sanitize_exception, sanitize_url

__all__ = ["WebhookDeliveryError", "WebhookSink", "WebhookStatusError", "webhook_targets"]

USER_AGENT: Final[str] = "notification-queue/0.1"
_METADATA_KEY: Final[str] = "webhooks"


class WebhookDeliveryError(RuntimeError):
    """One or more webhook targets rejected or did not answer a notification."""

    def __init__(self, failures: Mapping[str, str]) -> None:
        details = "; ".join(f"{url}: {reason}" for url, reason in failures.items())
        super().__init__(f"{len(failures)} webhook target(s) failed: {details}")
        self.failures: dict[str, str] = dict(failures)


class WebhookStatusError(RuntimeError):
    """A webhook target answered with a non-2xx status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.status: int = status


def webhook_targets(configured: Iterable[str], notification: Notification) -> list[str]:
    """Configured URLs followed by per-notification URLs, without duplicates."""
    extra = notification.metadata.get(_METADATA_KEY)
    candidates: list[str] = list(configured)
    if isinstance(extra, str):
        candidates.append(extra)
    elif isinstance(extra, Sequence):
        candidates.extend(url for url in extra if isinstance(url, str))
    return list(dict.fromkeys(url for url in candidates if url))


def build_webhook_payload(notification: Notification) -> dict[str, object]:
    payload = notification.to_wire()
    payload["title"] = notification_title(notification)
    payload["body"] = notification_body(notification)
    payload["url"] = notification_path(notification)
    return payload


class WebhookSink:
    """POST each notification to every webhook target.

    Use as an async context manager, or call :meth:`close` when done. A
    session is created on first delivery if none was supplied.

    Example:
        >>> async with WebhookSink(["https://hooks.example.com/notify"]) as sink:
        ...     manager.register_channel_handler(Channel.WEBHOOK, sink)
    """

    def __init__(
        self,
        urls: Iterable[str] = (),
        *,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        self._urls: tuple[str, ...] = tuple(urls)
        self._timeout: float = timeout
        self._session: aiohttp.ClientSession | None = session
        self._owns_session: bool = session is None
        self._logger: logging.Logger = logging.getLogger(__name__)

    @property
    def urls(self) -> tuple[str, ...]:
        return self._urls

    async def __aenter__(self) -> Self:
        _ = self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                json_serialize=json.dumps,
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def deliver(self, notification: Notification) -> None:
        """POST ``notification`` to every target concurrently.

        Raises:
            WebhookDeliveryError: If any target failed
        """
        targets = webhook_targets(self._urls, notification)
        if not targets:
            self._logger.debug("No webhook targets for notification %s", notification.id)
            return

        payload = build_webhook_payload(notification)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "X-Notification-ID": notification.id,
            "X-Notification-Type": str(notification.type),
        }
        results = await asyncio.gather(
            *(self._post(url, payload, headers) for url in targets),
            return_exceptions=True,
        )

        failures: dict[str, str] = {}
        for url, result in zip(targets, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                failures[sanitize_url(url)] = sanitize_exception(result)
        if failures:
            raise WebhookDeliveryError(failures)

    async def _post(self, url: str, payload: Mapping[str, object], headers: Mapping[str, str]) -> None:
        session = self._ensure_session()
        async with asyncio.timeout(self._timeout):
            async with session.post(url, json=payload, headers=headers) as response:
                if not 200 <= response.status < 300:
                    raise WebhookStatusError(response.status)
        self._logger.debug("Webhook delivered to %s", sanitize_url(url))
