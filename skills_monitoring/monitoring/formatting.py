"""Plain-text rendering of snapshots, durations and alert emails."""

from __future__ import annotations

from datetime import datetime

from skills_monitoring.metrics.models import MetricSnapshot
from skills_monitoring.monitoring.alert_rules import AlertThreshold
from skills_monitoring.monitoring.models import Alert


def format_metrics(m: MetricSnapshot) -> str:
    """Aligned key/value block of a snapshot's readings."""
    health = "Healthy" if m.service_health == 1 else "Down"
    return "\n".join(
        [
            f"Skill Error Rate:     {m.error_rate:.2f}%",
            f"Timeout Rate:         {m.timeout_rate:.2f}%",
            f"P95 Response Time:    {m.p95_response_time_ms:.0f}ms",
            f"Avg Response Time:    {m.average_response_time_ms:.0f}ms",
            f"Hourly AI Cost:       ${m.hourly_cost:.2f}",
            f"Cost Spike:           {m.cost_spike_percentage:.0f}%",
            f"Cache Hit Rate:       {m.cache_hit_rate:.1f}%",
            f"Service Health:       {health}",
            f"Timestamp:            {m.timestamp.isoformat()}",
        ]
    )


def format_duration(start: datetime, end: datetime) -> str:
    """``"Xm Ys"`` below an hour, ``"Xh Ym"`` above."""
    total_seconds = max(int((end - start).total_seconds()), 0)
    minutes, seconds = divmod(total_seconds, 60)
    if minutes > 60:
        hours, remaining = divmod(minutes, 60)
        return f"{hours}h {remaining}m"
    return f"{minutes}m {seconds}s"


def format_alert_email(alert: Alert, threshold: AlertThreshold) -> str:
    return f"""ALERT TRIGGERED
===============
Name: {alert.name}
Severity: {alert.severity.value.upper()}
Triggered At: {alert.triggered_at.isoformat()}

DESCRIPTION
===========
{threshold.description}

THRESHOLD
=========
{threshold.threshold}
Duration: {threshold.duration}

CURRENT METRICS
===============
{format_metrics(alert.metrics)}

RUNBOOK
=======
{alert.runbook_url or 'No runbook available'}

ESCALATION POLICY
=================
{threshold.escalation_policy or 'No escalation policy'}"""
