"""AlertLifecycleManager -- evaluates threshold rules each tick, drives the
alert lifecycle and fans notifications out to channels.

Provides:
- Create-or-refresh per threshold id: at most one active alert per rule,
  refreshes update the embedded snapshot without re-notifying
- Resolution when a rule stops matching; critical alerts send explicit
  resolution notices on paging and chat, lower severities resolve silently
- Concurrent per-alert channel fan-out with a per-channel deadline; a
  failed or slow channel is recorded in the alert's notification log and
  never blocks other channels or the evaluation
- Bounded alert history and a trailing-24h daily summary report

Ticks are serialized with an instance-owned ``asyncio.Lock``; overlapping
``evaluate()`` calls run one after another.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta

from skills_monitoring.core.config import Settings
from skills_monitoring.core.enums import (
    AlertChannel,
    AlertSeverity,
    AlertStatus,
    NotificationEvent,
)
from skills_monitoring.core.utils.logging_config import get_logger
from skills_monitoring.metrics.metrics_store import MetricsStore
from skills_monitoring.metrics.models import MetricSnapshot, ensure_utc, utcnow
from skills_monitoring.monitoring.alert_evaluator import AlertEvaluator
from skills_monitoring.monitoring.alert_rules import DEFAULT_THRESHOLDS, AlertThreshold
from skills_monitoring.monitoring.formatting import format_metrics
from skills_monitoring.monitoring.models import Alert, DailySummary, NotificationAttempt
from skills_monitoring.monitoring.notifiers import (
    EmailChannel,
    NotificationChannel,
    build_channels,
)

logger = get_logger(__name__)

SUMMARY_WINDOW = timedelta(hours=24)
SUMMARY_RECENT_LIMIT = 10
# Channels that receive resolution notices for critical alerts
RESOLUTION_CHANNELS = (AlertChannel.PAGERDUTY, AlertChannel.SLACK)

SendFn = Callable[[NotificationChannel], Awaitable[None]]


class AlertLifecycleManager:
    """Stateful orchestrator of the alert lifecycle.

    Parameters:
        channels: Notification channels, at most one per ``AlertChannel``.
        thresholds: Rule table (defaults to ``DEFAULT_THRESHOLDS``).
        metrics_store: Store receiving every evaluated snapshot.
        evaluator: Stateless rule evaluator.
        history_limit: Maximum retained alerts in history.
        summary_recipients: Daily summary recipients; defaults to the
            email channel's recipients when one is configured.
    """

    def __init__(
        self,
        channels: Sequence[NotificationChannel] | None = None,
        thresholds: Sequence[AlertThreshold] = DEFAULT_THRESHOLDS,
        metrics_store: MetricsStore | None = None,
        evaluator: AlertEvaluator | None = None,
        history_limit: int = 1000,
        summary_recipients: list[str] | None = None,
    ) -> None:
        ids = [t.id for t in thresholds]
        if len(ids) != len(set(ids)):
            raise ValueError("Alert threshold ids must be unique")

        self.thresholds: tuple[AlertThreshold, ...] = tuple(thresholds)
        self.metrics_store = metrics_store or MetricsStore()
        self.evaluator = evaluator or AlertEvaluator()

        self._channels: dict[AlertChannel, NotificationChannel] = {}
        for channel in channels or ():
            if channel.CHANNEL in self._channels:
                raise ValueError(f"Duplicate channel: {channel.CHANNEL.value}")
            self._channels[channel.CHANNEL] = channel

        if summary_recipients is None:
            email = self._channels.get(AlertChannel.EMAIL)
            summary_recipients = (
                list(email.recipients) if isinstance(email, EmailChannel) else []
            )
        self.summary_recipients = summary_recipients

        self._active: dict[str, Alert] = {}  # threshold id -> active alert
        self._active_rules: dict[str, AlertThreshold] = {}
        self._history: deque[Alert] = deque(maxlen=history_limit)
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> AlertLifecycleManager:
        """Build a manager, its store and every enabled channel from settings."""
        if cfg is None:
            from skills_monitoring.core.config import settings as cfg

        return cls(
            channels=build_channels(cfg),
            metrics_store=MetricsStore(
                snapshot_limit=cfg.metrics_history_limit,
                execution_limit=cfg.execution_history_limit,
                detect_anomalies_on_record=cfg.detect_anomalies_on_record,
            ),
            history_limit=cfg.alert_history_limit,
            summary_recipients=cfg.alert_recipient_list,
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(self, snapshot: MetricSnapshot) -> list[Alert]:
        """Run one tick against *snapshot*.

        Records the snapshot, evaluates every rule, creates or refreshes
        alerts for triggered rules and resolves active alerts whose rule no
        longer matches. Returns the alerts created or refreshed this tick.
        """
        async with self._lock:
            self.metrics_store.record_snapshot(snapshot)
            touched: list[Alert] = []

            for result in self.evaluator.evaluate(snapshot, self.thresholds):
                if result.error is not None:
                    continue
                if result.triggered:
                    touched.append(await self._trigger(result.threshold, snapshot))
                else:
                    await self._resolve(result.threshold.id)

            logger.debug(
                "evaluation_complete",
                triggered=len(touched),
                active=len(self._active),
            )
            return touched

    async def trigger_alert(
        self, threshold: AlertThreshold, snapshot: MetricSnapshot
    ) -> Alert:
        """Create (or refresh) the alert for *threshold* outside a tick."""
        async with self._lock:
            return await self._trigger(threshold, snapshot)

    async def resolve_alert(self, threshold_id: str) -> Alert | None:
        """Resolve the active alert for *threshold_id*, if any."""
        async with self._lock:
            alert = self._active.get(threshold_id)
            if alert is not None:
                await self._resolve(threshold_id)
            return alert

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def channels(self) -> dict[AlertChannel, NotificationChannel]:
        return dict(self._channels)

    def get_active_alerts(self) -> list[Alert]:
        return list(self._active.values())

    def get_active_alert(self, threshold_id: str) -> Alert | None:
        return self._active.get(threshold_id)

    def get_history(self, limit: int | None = None) -> list[Alert]:
        """Alert history oldest-first, the newest ``limit`` if given."""
        if limit is None:
            return list(self._history)
        if limit <= 0:
            return []
        return list(self._history)[-limit:]

    def get_current_metrics(self) -> MetricSnapshot | None:
        return self.metrics_store.latest_snapshot()

    def get_metrics_history(self, limit: int | None = None) -> list[MetricSnapshot]:
        return self.metrics_store.get_snapshot_history(limit)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def generate_daily_summary(self, as_of: datetime | None = None) -> DailySummary:
        """Aggregate the trailing 24h of alert history into a report."""
        now = ensure_utc(as_of or utcnow())
        window = [
            a
            for a in self._history
            if timedelta(0) <= now - a.triggered_at <= SUMMARY_WINDOW
        ]
        counts = {
            severity.value: sum(1 for a in window if a.severity is severity)
            for severity in AlertSeverity
        }
        active = self.get_active_alerts()
        recent = list(reversed(window))[:SUMMARY_RECENT_LIMIT]
        current = self.get_current_metrics()

        active_lines = (
            "\n".join(
                f"- [{a.severity.value.upper()}] {a.name} "
                f"(triggered at {a.triggered_at.isoformat()})"
                for a in active
            )
            or "None"
        )
        recent_lines = (
            "\n".join(
                f"- [{a.severity.value.upper()}] {a.name} at {a.triggered_at.isoformat()}"
                for a in recent
            )
            or "None"
        )

        body = f"""Skills Monitoring - Daily Summary
Generated: {now.isoformat()}

ALERT SUMMARY (Last 24 Hours)
==============================
Critical Alerts: {counts[AlertSeverity.CRITICAL.value]}
Warning Alerts:  {counts[AlertSeverity.WARNING.value]}
Info Alerts:     {counts[AlertSeverity.INFO.value]}
Total Alerts:    {len(window)}

ACTIVE ALERTS
=============
{active_lines}

CURRENT METRICS
===============
{format_metrics(current) if current else 'No recent metrics'}

RECENT ALERTS (Last 24h)
========================
{recent_lines}"""

        return DailySummary(
            to=list(self.summary_recipients),
            subject=f"Skills Monitoring Daily Summary - {now.date().isoformat()}",
            body=body,
            generated_at=now,
            counts=counts,
            total=len(window),
            active_alerts=active,
            current_metrics=current,
            recent_alerts=recent,
        )

    async def send_daily_summary(self, as_of: datetime | None = None) -> bool:
        """Generate the daily summary and email it when email is configured.

        Returns ``True`` on delivery, ``False`` when skipped or failed
        (logged, no raise).
        """
        summary = self.generate_daily_summary(as_of)
        channel = self._channels.get(AlertChannel.EMAIL)
        if not isinstance(channel, EmailChannel) or not channel.enabled:
            logger.warning("daily_summary_not_sent", reason="email channel not configured")
            return False
        try:
            await asyncio.wait_for(
                channel.send_report(summary.subject, summary.body),
                timeout=channel.timeout_seconds,
            )
        except Exception as exc:
            logger.error("daily_summary_send_failed", error=str(exc) or type(exc).__name__)
            return False
        logger.info("daily_summary_sent", total_alerts=summary.total)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _trigger(self, threshold: AlertThreshold, snapshot: MetricSnapshot) -> Alert:
        existing = self._active.get(threshold.id)
        if existing is not None:
            existing.metrics = snapshot
            logger.debug("alert_refreshed", threshold_id=threshold.id, alert_id=existing.id)
            return existing

        now = utcnow()
        suffix = uuid.uuid4().hex[:8]
        alert = Alert(
            id=f"alert-{threshold.id}-{int(now.timestamp() * 1000)}-{suffix}",
            threshold_id=threshold.id,
            name=threshold.name,
            severity=threshold.severity,
            triggered_at=now,
            status=AlertStatus.ACTIVE,
            metrics=snapshot,
            runbook_url=threshold.runbook_url,
        )

        attempts = await self._fan_out(
            alert,
            threshold.channels,
            NotificationEvent.TRIGGER,
            lambda channel: channel.send_alert(alert, threshold),
        )
        alert.notifications_sent.extend(attempts)

        self._active[threshold.id] = alert
        self._active_rules[threshold.id] = threshold
        self._history.append(alert)

        logger.info(
            "alert_triggered",
            threshold_id=threshold.id,
            alert_id=alert.id,
            severity=threshold.severity.value,
            notifications=len(attempts),
            failed=sum(1 for a in attempts if not a.success),
        )
        return alert

    async def _resolve(self, threshold_id: str) -> None:
        alert = self._active.get(threshold_id)
        if alert is None:
            return
        threshold = self._active_rules[threshold_id]

        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = utcnow()

        if alert.severity is AlertSeverity.CRITICAL:
            targets = [c for c in threshold.channels if c in RESOLUTION_CHANNELS]
            attempts = await self._fan_out(
                alert,
                targets,
                NotificationEvent.RESOLVE,
                lambda channel: channel.send_resolution(alert),
            )
            alert.notifications_sent.extend(attempts)

        del self._active[threshold_id]
        del self._active_rules[threshold_id]
        logger.info(
            "alert_resolved",
            threshold_id=threshold_id,
            alert_id=alert.id,
            severity=alert.severity.value,
        )

    async def _fan_out(
        self,
        alert: Alert,
        channel_keys: Sequence[AlertChannel],
        event: NotificationEvent,
        send: SendFn,
    ) -> list[NotificationAttempt]:
        """Send on every configured channel concurrently and join."""
        targets: list[NotificationChannel] = []
        for key in channel_keys:
            channel = self._channels.get(key)
            if channel is None or not channel.enabled:
                logger.debug("channel_skipped", channel=key.value, alert_id=alert.id)
                continue
            if event is NotificationEvent.RESOLVE and not channel.SUPPORTS_RESOLUTION:
                continue
            targets.append(channel)

        if not targets:
            return []
        results = await asyncio.gather(
            *(self._deliver(channel, alert, event, send) for channel in targets)
        )
        return list(results)

    async def _deliver(
        self,
        channel: NotificationChannel,
        alert: Alert,
        event: NotificationEvent,
        send: SendFn,
    ) -> NotificationAttempt:
        name = channel.CHANNEL.value
        try:
            await asyncio.wait_for(send(channel), timeout=channel.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "notification_timeout",
                channel=name,
                alert_id=alert.id,
                transition=event.value,
                timeout_seconds=channel.timeout_seconds,
            )
            return NotificationAttempt(
                channel=channel.CHANNEL,
                sent_at=utcnow(),
                success=False,
                event=event,
                error=f"timed out after {channel.timeout_seconds}s",
            )
        except Exception as exc:
            logger.error(
                "notification_failed",
                channel=name,
                alert_id=alert.id,
                transition=event.value,
                error=str(exc),
            )
            return NotificationAttempt(
                channel=channel.CHANNEL,
                sent_at=utcnow(),
                success=False,
                event=event,
                error=str(exc) or type(exc).__name__,
            )

        logger.info(
            "notification_sent",
            channel=name,
            alert_id=alert.id,
            transition=event.value,
        )
        return NotificationAttempt(
            channel=channel.CHANNEL, sent_at=utcnow(), success=True, event=event
        )
