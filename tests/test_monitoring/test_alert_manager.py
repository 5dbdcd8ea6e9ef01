"""Tests for AlertLifecycleManager -- lifecycle, fan-out and reporting.

Covers:
- Service-down and error-rate scenarios end to end
- Idempotent refresh: one active alert, no re-notification
- Resolution clears active state and stamps resolved_at in history
- Channel isolation: one failing channel, one succeeding
- Per-channel timeout and concurrent (not serialized) channel sends
- Critical resolutions notify paging + chat, warnings resolve silently
- Overlapping evaluate() calls are serialized
- Daily summary counts, recency ordering and email delivery
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from skills_monitoring.core.config import Settings
from skills_monitoring.core.enums import (
    AlertChannel,
    AlertSeverity,
    AlertStatus,
    NotificationEvent,
)
from skills_monitoring.metrics.metrics_store import MetricsStore
from skills_monitoring.metrics.models import utcnow
from skills_monitoring.monitoring import alert_manager
from skills_monitoring.monitoring.alert_manager import AlertLifecycleManager
from skills_monitoring.monitoring.alert_rules import AlertThreshold, get_threshold
from skills_monitoring.monitoring.notifiers import (
    EmailChannel,
    NotificationChannel,
    NotificationError,
    SlackChannel,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
class FakeChannel(NotificationChannel):
    """In-memory channel recording calls, optionally failing or slow."""

    SUPPORTS_RESOLUTION = True

    def __init__(
        self,
        channel: AlertChannel,
        fail: bool = False,
        delay: float = 0.0,
        timeout_seconds: float = 2.0,
    ) -> None:
        super().__init__(timeout_seconds)
        self.CHANNEL = channel
        self.fail = fail
        self.delay = delay
        self.sent: list[str] = []
        self.resolved: list[str] = []

    async def send_alert(self, alert, threshold) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise NotificationError(f"{self.CHANNEL.value} unreachable")
        self.sent.append(alert.threshold_id)

    async def send_resolution(self, alert) -> None:
        if self.fail:
            raise NotificationError(f"{self.CHANNEL.value} unreachable")
        self.resolved.append(alert.threshold_id)


def _channels(**kwargs) -> dict[AlertChannel, FakeChannel]:
    return {c: FakeChannel(c, **kwargs) for c in AlertChannel}


def _manager(channels: dict[AlertChannel, FakeChannel] | None = None, **kwargs):
    return AlertLifecycleManager(
        channels=list((channels or {}).values()), **kwargs
    )


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_service_down_triggers_single_critical_alert(make_snapshot) -> None:
    manager = _manager(_channels())
    alerts = await manager.evaluate(make_snapshot(service_health=0))

    assert len(alerts) == 1
    assert alerts[0].threshold_id == "skills-service-down"
    assert alerts[0].severity is AlertSeverity.CRITICAL
    assert alerts[0].status is AlertStatus.ACTIVE
    assert alerts[0].escalation_level == 0
    assert len(manager.get_active_alerts()) == 1


@pytest.mark.asyncio
async def test_error_rate_alert_resolves(make_snapshot) -> None:
    manager = _manager(_channels())
    [alert] = await manager.evaluate(make_snapshot(error_rate=10))
    assert alert.threshold_id == "high-skill-error-rate"
    assert alert.runbook_url == get_threshold("high-skill-error-rate").runbook_url

    assert await manager.evaluate(make_snapshot(error_rate=1)) == []

    assert manager.get_active_alerts() == []
    [archived] = manager.get_history()
    assert archived.id == alert.id
    assert archived.status is AlertStatus.RESOLVED
    assert archived.resolved_at is not None
    assert archived.resolved_at >= archived.triggered_at


@pytest.mark.asyncio
async def test_healthy_snapshot_triggers_nothing(healthy_snapshot) -> None:
    manager = _manager(_channels())
    assert await manager.evaluate(healthy_snapshot) == []
    assert manager.get_history() == []


@pytest.mark.asyncio
async def test_cache_rules_trigger_independently(make_snapshot) -> None:
    manager = _manager(_channels())
    alerts = await manager.evaluate(make_snapshot(cache_hit_rate=20))
    assert [a.threshold_id for a in alerts] == ["low-cache-hit-rate", "cache-warmup-needed"]
    assert {a.severity for a in alerts} == {AlertSeverity.WARNING, AlertSeverity.INFO}


# ---------------------------------------------------------------------------
# Refresh / dedup
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_refresh_is_idempotent(make_snapshot) -> None:
    channels = _channels()
    manager = _manager(channels)

    [first] = await manager.evaluate(make_snapshot(error_rate=10))
    log_len = len(first.notifications_sent)
    second_snapshot = make_snapshot(error_rate=12)
    [second] = await manager.evaluate(second_snapshot)

    assert second is first
    assert second.metrics is second_snapshot
    assert len(second.notifications_sent) == log_len == 2
    assert channels[AlertChannel.PAGERDUTY].sent == ["high-skill-error-rate"]
    assert channels[AlertChannel.SLACK].sent == ["high-skill-error-rate"]

    active = [a for a in manager.get_active_alerts() if a.threshold_id == "high-skill-error-rate"]
    assert len(active) == 1
    assert len(manager.get_history()) == 1


@pytest.mark.asyncio
async def test_retrigger_after_resolution_creates_new_alert(make_snapshot) -> None:
    manager = _manager(_channels())
    [first] = await manager.evaluate(make_snapshot(error_rate=10))
    await manager.evaluate(make_snapshot())
    [second] = await manager.evaluate(make_snapshot(error_rate=10))

    assert second.id != first.id
    assert [a.id for a in manager.get_history()] == [first.id, second.id]


# ---------------------------------------------------------------------------
# Notification fan-out
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_channel_isolation(make_snapshot) -> None:
    channels = {
        AlertChannel.PAGERDUTY: FakeChannel(AlertChannel.PAGERDUTY, fail=True),
        AlertChannel.SLACK: FakeChannel(AlertChannel.SLACK),
    }
    manager = _manager(channels)

    [alert] = await manager.evaluate(make_snapshot(service_health=0))

    outcomes = {n.channel: n.success for n in alert.notifications_sent}
    assert outcomes == {AlertChannel.PAGERDUTY: False, AlertChannel.SLACK: True}
    failed = next(n for n in alert.notifications_sent if not n.success)
    assert failed.error == "pagerduty unreachable"
    assert channels[AlertChannel.SLACK].sent == ["skills-service-down"]
    assert alert.is_active


@pytest.mark.asyncio
async def test_delivery_outcomes_are_logged_with_transition(make_snapshot) -> None:
    channels = {
        AlertChannel.PAGERDUTY: FakeChannel(AlertChannel.PAGERDUTY, fail=True),
        AlertChannel.SLACK: FakeChannel(AlertChannel.SLACK),
    }
    manager = _manager(channels)

    with patch.object(alert_manager, "logger", wraps=alert_manager.logger) as log:
        [alert] = await manager.evaluate(make_snapshot(service_health=0))
        await manager.evaluate(make_snapshot())

    assert alert.status is AlertStatus.RESOLVED
    assert len(alert.notifications_sent) == 4
    sent = [c for c in log.info.call_args_list if c.args == ("notification_sent",)]
    failed = [c for c in log.error.call_args_list if c.args == ("notification_failed",)]
    assert [c.kwargs["transition"] for c in sent] == ["trigger", "resolve"]
    assert [c.kwargs["transition"] for c in failed] == ["trigger", "resolve"]


@pytest.mark.asyncio
async def test_unexpected_exception_is_recorded(make_snapshot) -> None:
    class Exploding(FakeChannel):
        async def send_alert(self, alert, threshold) -> None:
            raise ConnectionResetError("socket closed")

    manager = _manager({AlertChannel.SLACK: Exploding(AlertChannel.SLACK)})
    [alert] = await manager.evaluate(make_snapshot(timeout_rate=20))
    [attempt] = alert.notifications_sent
    assert attempt.success is False
    assert attempt.event is NotificationEvent.TRIGGER


@pytest.mark.asyncio
async def test_slow_channel_times_out(make_snapshot) -> None:
    channels = {
        AlertChannel.PAGERDUTY: FakeChannel(AlertChannel.PAGERDUTY),
        AlertChannel.SLACK: FakeChannel(AlertChannel.SLACK, delay=5.0, timeout_seconds=0.05),
    }
    manager = _manager(channels)

    started = time.monotonic()
    [alert] = await manager.evaluate(make_snapshot(service_health=0))
    elapsed = time.monotonic() - started

    assert elapsed < 2.0
    outcomes = {n.channel: n for n in alert.notifications_sent}
    assert outcomes[AlertChannel.PAGERDUTY].success is True
    assert outcomes[AlertChannel.SLACK].success is False
    assert "timed out" in outcomes[AlertChannel.SLACK].error


@pytest.mark.asyncio
async def test_channel_sends_run_concurrently(make_snapshot) -> None:
    channels = {
        AlertChannel.PAGERDUTY: FakeChannel(AlertChannel.PAGERDUTY, delay=0.3),
        AlertChannel.SLACK: FakeChannel(AlertChannel.SLACK, delay=0.3),
    }
    manager = _manager(channels)

    started = time.monotonic()
    [alert] = await manager.evaluate(make_snapshot(service_health=0))
    elapsed = time.monotonic() - started

    assert all(n.success for n in alert.notifications_sent)
    assert elapsed < 0.55


@pytest.mark.asyncio
async def test_unconfigured_channels_are_skipped(make_snapshot) -> None:
    manager = _manager({AlertChannel.SLACK: FakeChannel(AlertChannel.SLACK)})
    [alert] = await manager.evaluate(make_snapshot(service_health=0))
    assert [n.channel for n in alert.notifications_sent] == [AlertChannel.SLACK]


@pytest.mark.asyncio
async def test_disabled_channel_is_skipped(make_snapshot) -> None:
    disabled = SlackChannel(webhook_url="")
    manager = AlertLifecycleManager(channels=[disabled])
    [alert] = await manager.evaluate(make_snapshot(service_health=0))
    assert alert.notifications_sent == []


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_critical_resolution_notifies_paging_and_chat(make_snapshot) -> None:
    channels = _channels()
    manager = _manager(channels)

    [alert] = await manager.evaluate(make_snapshot(service_health=0))
    await manager.evaluate(make_snapshot())

    assert channels[AlertChannel.PAGERDUTY].resolved == ["skills-service-down"]
    assert channels[AlertChannel.SLACK].resolved == ["skills-service-down"]
    assert channels[AlertChannel.EMAIL].resolved == []
    resolves = [n for n in alert.notifications_sent if n.event is NotificationEvent.RESOLVE]
    assert {n.channel for n in resolves} == {AlertChannel.PAGERDUTY, AlertChannel.SLACK}


@pytest.mark.asyncio
async def test_warning_resolves_silently(make_snapshot) -> None:
    channels = _channels()
    manager = _manager(channels)

    [alert] = await manager.evaluate(make_snapshot(timeout_rate=20))
    log_len = len(alert.notifications_sent)
    await manager.evaluate(make_snapshot())

    assert alert.status is AlertStatus.RESOLVED
    assert channels[AlertChannel.SLACK].resolved == []
    assert len(alert.notifications_sent) == log_len


@pytest.mark.asyncio
async def test_failed_resolution_still_resolves(make_snapshot) -> None:
    manager = _manager(_channels(fail=True))

    [alert] = await manager.evaluate(make_snapshot(service_health=0))
    await manager.evaluate(make_snapshot())

    assert manager.get_active_alerts() == []
    assert alert.resolved_at is not None
    assert all(not n.success for n in alert.notifications_sent)


@pytest.mark.asyncio
async def test_manual_trigger_and_resolve(healthy_snapshot) -> None:
    manager = _manager(_channels())
    rule = get_threshold("cost-spike-detected")

    alert = await manager.trigger_alert(rule, healthy_snapshot)
    assert manager.get_active_alert(rule.id) is alert

    resolved = await manager.resolve_alert(rule.id)
    assert resolved is alert
    assert alert.status is AlertStatus.RESOLVED
    assert await manager.resolve_alert(rule.id) is None


@pytest.mark.asyncio
async def test_raising_rule_neither_triggers_nor_resolves(make_snapshot) -> None:
    def _condition(snapshot) -> bool:
        if snapshot.error_rate < 0:
            raise ValueError("negative error rate")
        return snapshot.error_rate > 5

    rule = AlertThreshold(
        id="custom",
        name="Custom",
        description="Custom error-rate rule",
        severity=AlertSeverity.WARNING,
        condition=_condition,
        threshold="error_rate > 5%",
        duration="immediate",
    )
    manager = AlertLifecycleManager(thresholds=[rule])

    await manager.evaluate(make_snapshot(error_rate=10))
    await manager.evaluate(make_snapshot(error_rate=-1))
    assert manager.get_active_alert("custom") is not None

    await manager.evaluate(make_snapshot(error_rate=1))
    assert manager.get_active_alert("custom") is None


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_overlapping_ticks_are_serialized(make_snapshot) -> None:
    slack = FakeChannel(AlertChannel.SLACK, delay=0.1)
    manager = _manager({AlertChannel.SLACK: slack})
    snapshot = make_snapshot(service_health=0)

    first, second = await asyncio.gather(
        manager.evaluate(snapshot), manager.evaluate(snapshot)
    )

    assert first[0] is second[0]
    assert slack.sent == ["skills-service-down"]
    assert len(manager.get_active_alerts()) == 1


# ---------------------------------------------------------------------------
# History and metrics queries
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_history_is_bounded(make_snapshot) -> None:
    manager = _manager(history_limit=2)
    for _ in range(3):
        await manager.evaluate(make_snapshot(service_health=0))
        await manager.evaluate(make_snapshot())

    history = manager.get_history()
    assert len(history) == 2
    assert len(manager.get_history(limit=1)) == 1
    assert manager.get_history(limit=1)[0] is history[-1]


@pytest.mark.asyncio
async def test_snapshots_are_recorded(make_snapshot) -> None:
    store = MetricsStore(snapshot_limit=2)
    manager = _manager(metrics_store=store)
    snaps = [make_snapshot(error_rate=float(i)) for i in range(3)]
    for s in snaps:
        await manager.evaluate(s)

    assert manager.get_current_metrics() is snaps[-1]
    assert manager.get_metrics_history() == snaps[1:]
    assert manager.get_metrics_history(limit=1) == [snaps[-1]]


def test_duplicate_threshold_ids_rejected() -> None:
    rule = get_threshold("cost-spike-detected")
    with pytest.raises(ValueError):
        AlertLifecycleManager(thresholds=[rule, rule])


def test_duplicate_channels_rejected() -> None:
    with pytest.raises(ValueError):
        AlertLifecycleManager(
            channels=[FakeChannel(AlertChannel.SLACK), FakeChannel(AlertChannel.SLACK)]
        )


def test_from_settings_wires_enabled_channels() -> None:
    cfg = Settings(
        slack_enabled=True,
        slack_webhook_url="https://hooks.slack.com/services/T/B/X",
        email_enabled=True,
        smtp_host="smtp.example.com",
        alert_recipients="oncall@example.com, lead@example.com",
        alert_history_limit=5,
        metrics_history_limit=10,
    )
    manager = AlertLifecycleManager.from_settings(cfg)

    assert set(manager.channels) == {AlertChannel.SLACK, AlertChannel.EMAIL}
    assert manager.summary_recipients == ["oncall@example.com", "lead@example.com"]
    assert manager.metrics_store.snapshot_limit == 10


def test_instances_do_not_share_state() -> None:
    a = AlertLifecycleManager()
    b = AlertLifecycleManager()
    assert a.metrics_store is not b.metrics_store
    assert a.get_active_alerts() is not b.get_active_alerts()


# ---------------------------------------------------------------------------
# Daily summary
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_daily_summary_counts_and_sections(make_snapshot) -> None:
    manager = _manager(_channels(), summary_recipients=["ops@example.com"])
    await manager.evaluate(make_snapshot(service_health=0, cache_hit_rate=20))
    await manager.evaluate(make_snapshot(cache_hit_rate=20))

    summary = manager.generate_daily_summary()

    assert summary.counts == {"critical": 1, "warning": 1, "info": 1}
    assert summary.total == 3
    assert summary.to == ["ops@example.com"]
    assert {a.threshold_id for a in summary.active_alerts} == {
        "low-cache-hit-rate",
        "cache-warmup-needed",
    }
    assert summary.recent_alerts[0].threshold_id == "cache-warmup-needed"
    assert "Critical Alerts: 1" in summary.body
    assert "Total Alerts:    3" in summary.body
    assert "Cache Hit Rate:       20.0%" in summary.body
    assert summary.subject.startswith("Skills Monitoring Daily Summary - ")
    assert summary.to_dict()["counts"]["warning"] == 1


@pytest.mark.asyncio
async def test_daily_summary_window_and_recent_limit(make_snapshot) -> None:
    manager = _manager()
    for _ in range(12):
        await manager.evaluate(make_snapshot(service_health=0))
        await manager.evaluate(make_snapshot())

    summary = manager.generate_daily_summary()
    assert summary.total == 12
    assert len(summary.recent_alerts) == 10
    assert summary.recent_alerts[0] is manager.get_history()[-1]

    later = manager.generate_daily_summary(as_of=utcnow() + timedelta(hours=25))
    assert later.total == 0
    assert "Total Alerts:    0" in later.body


@pytest.mark.asyncio
async def test_daily_summary_ignores_alerts_after_as_of(make_snapshot) -> None:
    manager = _manager()
    await manager.evaluate(make_snapshot(service_health=0))

    earlier = manager.generate_daily_summary(as_of=utcnow() - timedelta(hours=1))
    assert earlier.total == 0
    assert earlier.recent_alerts == []
    assert manager.generate_daily_summary().total == 1


def test_empty_daily_summary() -> None:
    summary = AlertLifecycleManager().generate_daily_summary()
    assert summary.total == 0
    assert summary.current_metrics is None
    assert "No recent metrics" in summary.body
    assert "ACTIVE ALERTS\n=============\nNone" in summary.body


@pytest.mark.asyncio
async def test_send_daily_summary_via_email(make_snapshot) -> None:
    email = EmailChannel(host="smtp.example.com", port=25, recipients=["ops@example.com"])
    manager = AlertLifecycleManager(channels=[email])
    await manager.evaluate(make_snapshot(service_health=0))

    with patch("skills_monitoring.monitoring.notifiers.smtp.smtplib.SMTP") as mock_smtp:
        server = MagicMock()
        mock_smtp.return_value.__enter__.return_value = server
        assert await manager.send_daily_summary() is True

    server.sendmail.assert_called_once()
    _, recipients, raw = server.sendmail.call_args.args
    assert recipients == ["ops@example.com"]
    assert "Skills Monitoring Daily Summary" in raw


@pytest.mark.asyncio
async def test_send_daily_summary_without_email() -> None:
    assert await AlertLifecycleManager().send_daily_summary() is False
