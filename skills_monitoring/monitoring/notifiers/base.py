"""Notification channel infrastructure.

Provides the NotificationChannel abstract class with:
- A per-channel send deadline (``timeout_seconds``) enforced by the caller
- Trigger delivery for every channel, resolution delivery where supported
- HTTP JSON posting via httpx for webhook-style channels

Channels report failure by raising; they never record results
themselves. The AlertLifecycleManager turns outcomes into
notification-log entries.

Exception hierarchy:
- NotificationError: delivery failed (non-2xx, unconfigured destination,
  SMTP failure)
"""

from __future__ import annotations

import abc
from typing import Any

import httpx

from skills_monitoring.core.enums import AlertChannel
from skills_monitoring.monitoring.alert_rules import AlertThreshold
from skills_monitoring.monitoring.models import Alert


class NotificationError(Exception):
    """Raised when a channel could not deliver a notification."""


class NotificationChannel(abc.ABC):
    """Abstract base class for all notification channels.

    Subclasses MUST override:
        CHANNEL: AlertChannel - which rule routing key this channel serves
        send_alert() - deliver a trigger notification

    Subclasses MAY override:
        SUPPORTS_RESOLUTION: bool - whether send_resolution() is implemented
        enabled - whether the channel is configured to deliver
    """

    CHANNEL: AlertChannel
    SUPPORTS_RESOLUTION: bool = False

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return True

    @abc.abstractmethod
    async def send_alert(self, alert: Alert, threshold: AlertThreshold) -> None:
        """Deliver a trigger notification.

        Raises:
            NotificationError: If delivery failed.
        """

    async def send_resolution(self, alert: Alert) -> None:
        """Deliver a resolution notification.

        Raises:
            NotificationError: If delivery failed.
        """
        raise NotImplementedError(
            f"{self.CHANNEL.value} does not send resolution notifications"
        )


class HttpNotificationChannel(NotificationChannel):
    """Channel delivering JSON payloads over HTTP POST.

    Parameters:
        timeout_seconds: HTTP timeout for one send.
        client: Optional shared ``httpx.AsyncClient``; when omitted a
            short-lived client is opened per send.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout_seconds)
        self._client = client

    async def _post_json(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        """POST ``payload`` and fail on any non-2xx status."""
        if self._client is not None:
            response = await self._client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds)
            ) as client:
                response = await client.post(url, json=payload)

        if response.is_error:
            raise NotificationError(
                f"{self.CHANNEL.value} API error: HTTP {response.status_code} "
                f"{response.reason_phrase}"
            )
        return response
