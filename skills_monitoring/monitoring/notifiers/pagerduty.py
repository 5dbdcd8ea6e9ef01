"""PagerDuty Events API v2 channel (paging / incident routing).

Trigger and resolve events share ``dedup_key = threshold id`` so the
resolution closes the incident opened by the trigger.
"""

from __future__ import annotations

from typing import Any

import httpx

from skills_monitoring.core.enums import AlertChannel, AlertSeverity
from skills_monitoring.metrics.models import utcnow
from skills_monitoring.monitoring.alert_rules import AlertThreshold
from skills_monitoring.monitoring.models import Alert
from skills_monitoring.monitoring.notifiers.base import (
    HttpNotificationChannel,
    NotificationError,
)

DEFAULT_API_URL = "https://events.pagerduty.com/v2/enqueue"
EVENT_SOURCE = "skills-monitoring"


class PagerDutyChannel(HttpNotificationChannel):
    """Send trigger/resolve events to the PagerDuty Events API.

    Parameters:
        routing_key: Integration routing key.
        api_url: Events endpoint.
        runbook_base_url: Prefix turning relative runbook paths into links.
    """

    CHANNEL = AlertChannel.PAGERDUTY
    SUPPORTS_RESOLUTION = True

    def __init__(
        self,
        routing_key: str,
        api_url: str = DEFAULT_API_URL,
        runbook_base_url: str = "https://docs.example.com",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout_seconds, client)
        self.routing_key = routing_key
        self.api_url = api_url or DEFAULT_API_URL
        self.runbook_base_url = runbook_base_url.rstrip("/")

    @property
    def enabled(self) -> bool:
        return bool(self.routing_key)

    def build_trigger_event(
        self, alert: Alert, threshold: AlertThreshold
    ) -> dict[str, Any]:
        event: dict[str, Any] = {
            "routing_key": self.routing_key,
            "event_action": "trigger",
            "dedup_key": alert.threshold_id,
            "payload": {
                "summary": f"{alert.name}: {threshold.description}",
                "severity": (
                    "critical" if alert.severity is AlertSeverity.CRITICAL else "error"
                ),
                "source": EVENT_SOURCE,
                "timestamp": alert.triggered_at.isoformat(),
                "custom_details": {
                    "threshold": threshold.threshold,
                    "metrics": alert.metrics.to_dict(),
                    "runbook": alert.runbook_url,
                },
            },
        }
        if alert.runbook_url:
            event["links"] = [
                {
                    "href": f"{self.runbook_base_url}{alert.runbook_url}",
                    "text": "View Runbook",
                }
            ]
        return event

    def build_resolve_event(self, alert: Alert) -> dict[str, Any]:
        resolved_at = alert.resolved_at or utcnow()
        return {
            "routing_key": self.routing_key,
            "event_action": "resolve",
            "dedup_key": alert.threshold_id,
            "payload": {
                "summary": f"{alert.name}: Resolved",
                "severity": "info",
                "source": EVENT_SOURCE,
                "timestamp": resolved_at.isoformat(),
            },
        }

    async def send_alert(self, alert: Alert, threshold: AlertThreshold) -> None:
        if not self.enabled:
            raise NotificationError("PagerDuty routing key not configured")
        await self._post_json(self.api_url, self.build_trigger_event(alert, threshold))

    async def send_resolution(self, alert: Alert) -> None:
        if not self.enabled:
            raise NotificationError("PagerDuty routing key not configured")
        await self._post_json(self.api_url, self.build_resolve_event(alert))
