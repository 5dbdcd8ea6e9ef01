"""Slack Incoming Webhook channel (team chat).

Messages use legacy attachments: a severity color bar, the rule's
description as title, threshold/duration text with an optional runbook
link, and short key/value fields for the headline metrics.
"""

from __future__ import annotations

from typing import Any

import httpx

from skills_monitoring.core.enums import AlertChannel, AlertSeverity
from skills_monitoring.monitoring.alert_rules import AlertThreshold
from skills_monitoring.monitoring.formatting import format_duration
from skills_monitoring.monitoring.models import Alert
from skills_monitoring.monitoring.notifiers.base import (
    HttpNotificationChannel,
    NotificationError,
)

SEVERITY_COLORS: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "#FF0000",
    AlertSeverity.WARNING: "#FFA500",
    AlertSeverity.INFO: "#0000FF",
}
RESOLVED_COLOR = "#00FF00"


def _field(title: str, value: str) -> dict[str, Any]:
    return {"title": title, "value": value, "short": True}


class SlackChannel(HttpNotificationChannel):
    """Post alert and resolution messages to a Slack webhook.

    Parameters:
        webhook_url: Incoming Webhook URL.
        channel: Target channel name (e.g. ``#skills-alerts``).
    """

    CHANNEL = AlertChannel.SLACK
    SUPPORTS_RESOLUTION = True

    def __init__(
        self,
        webhook_url: str,
        channel: str = "#skills-alerts",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout_seconds, client)
        self.webhook_url = webhook_url
        self.channel = channel

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def build_alert_message(
        self, alert: Alert, threshold: AlertThreshold
    ) -> dict[str, Any]:
        m = alert.metrics
        text = f"Threshold: {threshold.threshold}\nDuration: {threshold.duration}"
        if alert.runbook_url:
            text += f"\n\n:book: Runbook: {alert.runbook_url}"

        return {
            "channel": self.channel,
            "text": f":rotating_light: {alert.name}",
            "attachments": [
                {
                    "color": SEVERITY_COLORS[alert.severity],
                    "title": threshold.description,
                    "text": text,
                    "fields": [
                        _field("Severity", alert.severity.value.upper()),
                        _field("Triggered At", alert.triggered_at.isoformat()),
                        _field("Error Rate", f"{m.error_rate:.2f}%"),
                        _field("Response Time (p95)", f"{m.p95_response_time_ms:.0f}ms"),
                        _field("Cache Hit Rate", f"{m.cache_hit_rate:.1f}%"),
                        _field("Hourly Cost", f"${m.hourly_cost:.2f}"),
                    ],
                }
            ],
        }

    def build_resolution_message(self, alert: Alert) -> dict[str, Any]:
        fields = [_field("Triggered At", alert.triggered_at.isoformat())]
        text = "Alert cleared"
        if alert.resolved_at is not None:
            fields.append(_field("Resolved At", alert.resolved_at.isoformat()))
            text = f"Duration: {format_duration(alert.triggered_at, alert.resolved_at)}"

        return {
            "channel": self.channel,
            "text": f":white_check_mark: {alert.name} - RESOLVED",
            "attachments": [
                {
                    "color": RESOLVED_COLOR,
                    "title": "Alert Resolved",
                    "text": text,
                    "fields": fields,
                }
            ],
        }

    async def send_alert(self, alert: Alert, threshold: AlertThreshold) -> None:
        if not self.enabled:
            raise NotificationError("Slack webhook URL not configured")
        await self._post_json(self.webhook_url, self.build_alert_message(alert, threshold))

    async def send_resolution(self, alert: Alert) -> None:
        if not self.enabled:
            raise NotificationError("Slack webhook URL not configured")
        await self._post_json(self.webhook_url, self.build_resolution_message(alert))
