"""Alert lifecycle records and report objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from skills_monitoring.core.enums import (
    AlertChannel,
    AlertSeverity,
    AlertStatus,
    NotificationEvent,
)
from skills_monitoring.metrics.models import MetricSnapshot


@dataclass(frozen=True)
class NotificationAttempt:
    """One delivery attempt on one channel."""

    channel: AlertChannel
    sent_at: datetime
    success: bool
    event: NotificationEvent = NotificationEvent.TRIGGER
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "sent_at": self.sent_at.isoformat(),
            "success": self.success,
            "event": self.event.value,
            "error": self.error,
        }


@dataclass
class Alert:
    """A threshold rule that is (or was) triggered.

    Mutated in place while active: the embedded snapshot is refreshed and
    the notification log grows. ``escalation_level`` stays at 0; no
    escalation policy is implemented.

    Attributes:
        id: Generated identifier, ``alert-<threshold id>-<epoch ms>-<suffix>``.
        threshold_id: Id of the rule that fired.
        name: Rule name.
        severity: Rule severity.
        triggered_at: When the alert was created.
        status: ``active`` or ``resolved``.
        metrics: Latest snapshot that kept the rule triggered.
        notifications_sent: Append-only log of delivery attempts.
        escalation_level: Reserved, always 0.
        runbook_url: Runbook copied from the rule.
        resolved_at: When the rule stopped matching.
    """

    id: str
    threshold_id: str
    name: str
    severity: AlertSeverity
    triggered_at: datetime
    status: AlertStatus
    metrics: MetricSnapshot
    notifications_sent: list[NotificationAttempt] = field(default_factory=list)
    escalation_level: int = 0
    runbook_url: str | None = None
    resolved_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is AlertStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "threshold_id": self.threshold_id,
            "name": self.name,
            "severity": self.severity.value,
            "triggered_at": self.triggered_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "status": self.status.value,
            "metrics": self.metrics.to_dict(),
            "notifications_sent": [n.to_dict() for n in self.notifications_sent],
            "escalation_level": self.escalation_level,
            "runbook_url": self.runbook_url,
        }


@dataclass
class DailySummary:
    """Trailing-24h alert digest handed to the email/report delivery.

    Attributes:
        to: Report recipients.
        subject: Email subject line.
        body: Plain-text report.
        generated_at: Report time.
        counts: Severity value -> alerts triggered in the last 24h.
        total: Alerts triggered in the last 24h.
        active_alerts: Currently active alerts.
        current_metrics: Latest snapshot, if any.
        recent_alerts: Up to 10 most recent alerts of the last 24h, newest first.
    """

    to: list[str]
    subject: str
    body: str
    generated_at: datetime
    counts: dict[str, int]
    total: int
    active_alerts: list[Alert] = field(default_factory=list)
    current_metrics: MetricSnapshot | None = None
    recent_alerts: list[Alert] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "to": list(self.to),
            "subject": self.subject,
            "body": self.body,
            "generated_at": self.generated_at.isoformat(),
            "counts": dict(self.counts),
            "total": self.total,
            "active_alerts": [a.to_dict() for a in self.active_alerts],
            "current_metrics": (
                self.current_metrics.to_dict() if self.current_metrics else None
            ),
            "recent_alerts": [a.to_dict() for a in self.recent_alerts],
        }
