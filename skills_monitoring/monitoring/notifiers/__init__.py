"""Notification channels -- paging, team chat and email.

``build_channels`` wires every channel enabled in ``Settings``.
"""

from __future__ import annotations

from skills_monitoring.core.config import Settings
from skills_monitoring.monitoring.notifiers.base import (
    HttpNotificationChannel,
    NotificationChannel,
    NotificationError,
)
from skills_monitoring.monitoring.notifiers.pagerduty import PagerDutyChannel
from skills_monitoring.monitoring.notifiers.slack import SlackChannel
from skills_monitoring.monitoring.notifiers.smtp import EmailChannel


def build_channels(cfg: Settings) -> list[NotificationChannel]:
    """Instantiate the channels switched on in ``cfg``."""
    channels: list[NotificationChannel] = []
    timeout = cfg.notification_timeout_seconds
    if cfg.pagerduty_enabled:
        channels.append(
            PagerDutyChannel(
                routing_key=cfg.pagerduty_routing_key,
                api_url=cfg.pagerduty_api_url,
                runbook_base_url=cfg.runbook_base_url,
                timeout_seconds=timeout,
            )
        )
    if cfg.slack_enabled:
        channels.append(
            SlackChannel(
                webhook_url=cfg.slack_webhook_url,
                channel=cfg.slack_channel,
                timeout_seconds=timeout,
            )
        )
    if cfg.email_enabled:
        channels.append(
            EmailChannel(
                host=cfg.smtp_host,
                port=cfg.smtp_port,
                sender=cfg.alert_from,
                recipients=cfg.alert_recipient_list,
                user=cfg.smtp_user,
                password=cfg.smtp_password,
                timeout_seconds=timeout,
            )
        )
    return channels


__all__ = [
    "EmailChannel",
    "HttpNotificationChannel",
    "NotificationChannel",
    "NotificationError",
    "PagerDutyChannel",
    "SlackChannel",
    "build_channels",
]
