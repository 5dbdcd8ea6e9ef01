"""MetricsStore -- bounded in-process retention of health snapshots and
execution records, plus derived effectiveness statistics.

Provides:
- Capacity-bounded snapshot sequence (oldest evicted, default 1440 samples)
- Per-entity capacity-bounded execution history (default 10,000 records)
- Effectiveness aggregates with live 24h / 7d rolling windows
- Top-N ranking by effectiveness, usage or savings
- Anomaly detection comparing the 24h window against all-time baselines
  (on demand, or after every recorded execution when enabled)
- Cross-entity execution stats over any timeframe

Rolling windows are evaluated at read time: a record is in window iff
``as_of - record.timestamp <= window``, where ``as_of`` defaults to the
current UTC time. Nothing is cached, so two reads at different times may
see different window membership for the same data.

Naive timestamps (on records and on ``as_of``) are treated as UTC.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from skills_monitoring.core.enums import AnomalySeverity, AnomalyType, RankBy
from skills_monitoring.core.utils.logging_config import get_logger
from skills_monitoring.metrics import statistics as stats
from skills_monitoring.metrics.models import (
    AnomalyDetectionResult,
    EffectivenessMetrics,
    ExecutionRecord,
    ExecutionStats,
    MetricSnapshot,
    WindowStats,
    ensure_utc,
    utcnow,
)

logger = get_logger(__name__)

WINDOW_24H = timedelta(hours=24)
WINDOW_7D = timedelta(days=7)

AnomalyHandler = Callable[[str, list[AnomalyDetectionResult]], None]


@dataclass(frozen=True)
class AnomalyThresholds:
    """Deviation thresholds for anomaly detection.

    Attributes:
        min_total_executions: Minimum retained executions before detecting.
        min_window_executions: Minimum executions inside the 24h window.
        success_rate_drop: Absolute success-rate drop (0-1).
        execution_time_spike: 24h / all-time execution time ratio.
        token_savings_drop: Relative drop in average savings (0-1).
        error_rate_spike: Absolute error-rate increase (0-1).
    """

    min_total_executions: int = 20
    min_window_executions: int = 10
    success_rate_drop: float = 0.2
    execution_time_spike: float = 2.0
    token_savings_drop: float = 0.3
    error_rate_spike: float = 0.1


class MetricsStore:
    """Append-only, capacity-bounded store of snapshots and executions.

    Parameters:
        snapshot_limit: Maximum retained snapshots.
        execution_limit: Maximum retained executions per entity.
        weights: Effectiveness score weights.
        anomaly_thresholds: Anomaly detection thresholds.
        detect_anomalies_on_record: Run anomaly detection for the entity
            after every recorded execution (once per entity for a batch).
        anomaly_handler: Optional ``(entity_id, anomalies)`` callback
            invoked when detection on record finds anything.
    """

    def __init__(
        self,
        snapshot_limit: int = 1440,
        execution_limit: int = 10000,
        weights: stats.EffectivenessWeights = stats.DEFAULT_WEIGHTS,
        anomaly_thresholds: AnomalyThresholds | None = None,
        detect_anomalies_on_record: bool = False,
        anomaly_handler: AnomalyHandler | None = None,
    ) -> None:
        if snapshot_limit <= 0 or execution_limit <= 0:
            raise ValueError("History limits must be positive")
        self.snapshot_limit = snapshot_limit
        self.execution_limit = execution_limit
        self.weights = weights
        self.anomaly_thresholds = anomaly_thresholds or AnomalyThresholds()
        self.detect_anomalies_on_record = detect_anomalies_on_record
        self.anomaly_handler = anomaly_handler
        self._snapshots: deque[MetricSnapshot] = deque(maxlen=snapshot_limit)
        # Insertion-ordered: entity first-seen order breaks ranking ties
        self._executions: dict[str, deque[ExecutionRecord]] = {}

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def record_snapshot(self, snapshot: MetricSnapshot) -> None:
        """Append a snapshot, evicting the oldest when over capacity."""
        evicted = len(self._snapshots) == self.snapshot_limit
        self._snapshots.append(snapshot)
        logger.debug(
            "snapshot_recorded",
            timestamp=snapshot.timestamp.isoformat(),
            retained=len(self._snapshots),
            evicted=evicted,
        )

    def latest_snapshot(self) -> MetricSnapshot | None:
        return self._snapshots[-1] if self._snapshots else None

    def get_snapshot_history(self, limit: int | None = None) -> list[MetricSnapshot]:
        """Return retained snapshots oldest-first, the newest ``limit`` if given."""
        return _tail(self._snapshots, limit)

    # ------------------------------------------------------------------
    # Executions
    # ------------------------------------------------------------------

    def record_execution(self, record: ExecutionRecord) -> None:
        """Append an execution to its entity's bounded history."""
        if not isinstance(record, ExecutionRecord):
            raise TypeError(
                f"Expected ExecutionRecord, got {type(record).__name__}"
            )
        self._append(record)
        if self.detect_anomalies_on_record:
            self._check_anomalies(record.entity_id)

    def record_execution_batch(self, records: Iterable[ExecutionRecord]) -> int:
        """Record many executions, equivalent to repeated single calls.

        Every element is checked before anything is appended, so a bad
        element leaves the store untouched.

        Returns:
            Number of records appended.
        """
        batch = list(records)
        for i, record in enumerate(batch):
            if not isinstance(record, ExecutionRecord):
                raise TypeError(
                    f"Batch element {i}: expected ExecutionRecord, "
                    f"got {type(record).__name__}"
                )
        for record in batch:
            self._append(record)
        logger.debug("execution_batch_recorded", count=len(batch))
        if self.detect_anomalies_on_record:
            for entity_id in dict.fromkeys(r.entity_id for r in batch):
                self._check_anomalies(entity_id)
        return len(batch)

    def get_execution_history(
        self, entity_id: str, limit: int | None = None
    ) -> list[ExecutionRecord]:
        history = self._executions.get(entity_id)
        if history is None:
            return []
        return _tail(history, limit)

    def entity_ids(self) -> list[str]:
        """Tracked entity ids in first-seen order."""
        return list(self._executions)

    # ------------------------------------------------------------------
    # Effectiveness
    # ------------------------------------------------------------------

    def get_effectiveness(
        self, entity_id: str, as_of: datetime | None = None
    ) -> EffectivenessMetrics | None:
        """Compute the full effectiveness aggregate for one entity.

        Returns ``None`` when the entity has no recorded executions.
        """
        history = self._executions.get(entity_id)
        if not history:
            return None
        return self._compute(entity_id, list(history), ensure_utc(as_of or utcnow()))

    def get_effectiveness_for_many(
        self, entity_ids: Sequence[str], as_of: datetime | None = None
    ) -> dict[str, EffectivenessMetrics]:
        """Effectiveness per entity; entities without data are omitted."""
        as_of = ensure_utc(as_of or utcnow())
        results: dict[str, EffectivenessMetrics] = {}
        for entity_id in entity_ids:
            metrics = self.get_effectiveness(entity_id, as_of=as_of)
            if metrics is not None:
                results[entity_id] = metrics
        return results

    def get_all_effectiveness(
        self, as_of: datetime | None = None
    ) -> list[EffectivenessMetrics]:
        """Effectiveness for every tracked entity, in first-seen order."""
        return list(self.get_effectiveness_for_many(self.entity_ids(), as_of).values())

    def get_top_entities(
        self,
        limit: int = 10,
        rank_by: RankBy | str = RankBy.EFFECTIVENESS,
        as_of: datetime | None = None,
    ) -> list[EffectivenessMetrics]:
        """Rank entities descending by the chosen dimension.

        The sort is stable, so ties keep first-seen order.
        """
        try:
            rank_by = RankBy(rank_by)
        except ValueError:
            raise ValueError(
                f"Unknown rank dimension: {rank_by!r} "
                f"(expected one of {[r.value for r in RankBy]})"
            ) from None

        key = {
            RankBy.EFFECTIVENESS: lambda m: m.effectiveness_score,
            RankBy.USAGE: lambda m: m.total_executions,
            RankBy.SAVINGS: lambda m: m.total_tokens_saved,
        }[rank_by]

        ranked = sorted(self.get_all_effectiveness(as_of), key=key, reverse=True)
        return ranked[: max(limit, 0)]

    def get_execution_stats(
        self, window: timedelta = WINDOW_24H, as_of: datetime | None = None
    ) -> ExecutionStats:
        """Aggregate executions of every entity that fall inside *window*.

        Uses the same membership rule as the per-entity rolling windows.
        An empty timeframe yields zeroed stats.
        """
        as_of = ensure_utc(as_of or utcnow())
        in_window = [
            r
            for history in self._executions.values()
            for r in history
            if as_of - r.timestamp <= window
        ]
        window_seconds = window.total_seconds()
        if not in_window:
            return ExecutionStats(window_seconds=window_seconds)

        n = len(in_window)
        return ExecutionStats(
            window_seconds=window_seconds,
            executions=n,
            success_rate=sum(1 for r in in_window if r.success) / n,
            average_execution_time_ms=stats.mean([r.execution_time_ms for r in in_window]),
            average_tokens_saved=stats.mean([r.tokens_saved for r in in_window]),
            total_cost=float(sum(r.cost for r in in_window)),
        )

    # ------------------------------------------------------------------
    # Anomaly detection
    # ------------------------------------------------------------------

    def detect_anomalies(
        self, entity_id: str, as_of: datetime | None = None
    ) -> list[AnomalyDetectionResult]:
        """Compare the entity's last 24h against its all-time baseline.

        Requires ``min_total_executions`` retained executions and
        ``min_window_executions`` inside the 24h window; otherwise returns
        an empty list. Each detected anomaly is logged as a warning.
        """
        as_of = ensure_utc(as_of or utcnow())
        metrics = self.get_effectiveness(entity_id, as_of=as_of)
        th = self.anomaly_thresholds
        if metrics is None or metrics.total_executions < th.min_total_executions:
            return []
        recent = metrics.last_24_hours
        if recent.executions < th.min_window_executions:
            return []

        anomalies: list[AnomalyDetectionResult] = []

        drop = metrics.success_rate - recent.success_rate
        if drop > th.success_rate_drop:
            anomalies.append(
                AnomalyDetectionResult(
                    entity_id=entity_id,
                    anomaly_type=AnomalyType.SUCCESS_RATE_DROP,
                    severity=_grade(drop, high=0.4, medium=0.25),
                    message=(
                        f"Success rate dropped from {metrics.success_rate * 100:.1f}% "
                        f"to {recent.success_rate * 100:.1f}% in last 24h"
                    ),
                    current=recent.success_rate,
                    baseline=metrics.success_rate,
                    deviation=drop,
                    detected_at=as_of,
                )
            )

        if metrics.average_execution_time_ms > 0:
            ratio = recent.average_execution_time_ms / metrics.average_execution_time_ms
            if ratio > th.execution_time_spike:
                anomalies.append(
                    AnomalyDetectionResult(
                        entity_id=entity_id,
                        anomaly_type=AnomalyType.EXECUTION_TIME_SPIKE,
                        severity=_grade(ratio, high=3.0, medium=2.5),
                        message=(
                            f"Execution time spiked from "
                            f"{metrics.average_execution_time_ms:.0f}ms to "
                            f"{recent.average_execution_time_ms:.0f}ms"
                        ),
                        current=recent.average_execution_time_ms,
                        baseline=metrics.average_execution_time_ms,
                        deviation=ratio - 1.0,
                        detected_at=as_of,
                    )
                )

        if metrics.average_tokens_saved > 0:
            savings_drop = (
                metrics.average_tokens_saved - recent.average_tokens_saved
            ) / metrics.average_tokens_saved
            if savings_drop > th.token_savings_drop:
                anomalies.append(
                    AnomalyDetectionResult(
                        entity_id=entity_id,
                        anomaly_type=AnomalyType.TOKEN_SAVINGS_DROP,
                        severity=_grade(savings_drop, high=0.5, medium=0.4),
                        message=(
                            f"Token savings dropped from "
                            f"{metrics.average_tokens_saved * 100:.1f}% to "
                            f"{recent.average_tokens_saved * 100:.1f}%"
                        ),
                        current=recent.average_tokens_saved,
                        baseline=metrics.average_tokens_saved,
                        deviation=savings_drop,
                        detected_at=as_of,
                    )
                )

        error_increase = recent.error_rate - metrics.error_rate
        if error_increase > th.error_rate_spike:
            anomalies.append(
                AnomalyDetectionResult(
                    entity_id=entity_id,
                    anomaly_type=AnomalyType.ERROR_RATE_SPIKE,
                    severity=_grade(error_increase, high=0.2, medium=0.15),
                    message=(
                        f"Error rate increased from {metrics.error_rate * 100:.1f}% "
                        f"to {recent.error_rate * 100:.1f}%"
                    ),
                    current=recent.error_rate,
                    baseline=metrics.error_rate,
                    deviation=error_increase,
                    detected_at=as_of,
                )
            )

        for anomaly in anomalies:
            logger.warning(
                "anomaly_detected",
                entity_id=entity_id,
                anomaly_type=anomaly.anomaly_type.value,
                severity=anomaly.severity.value,
                message=anomaly.message,
            )
        return anomalies

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Retention counters for operators."""
        return {
            "entities_tracked": len(self._executions),
            "total_executions": sum(len(h) for h in self._executions.values()),
            "snapshots_retained": len(self._snapshots),
            "snapshot_limit": self.snapshot_limit,
            "execution_limit": self.execution_limit,
        }

    def clear(self) -> None:
        """Drop all retained snapshots and executions."""
        self._snapshots.clear()
        self._executions.clear()
        logger.info("metrics_store_cleared")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check_anomalies(self, entity_id: str) -> None:
        anomalies = self.detect_anomalies(entity_id)
        if anomalies and self.anomaly_handler is not None:
            self.anomaly_handler(entity_id, anomalies)

    def _append(self, record: ExecutionRecord) -> None:
        if record.timestamp.tzinfo is None:
            record = replace(record, timestamp=ensure_utc(record.timestamp))
        history = self._executions.get(record.entity_id)
        if history is None:
            history = deque(maxlen=self.execution_limit)
            self._executions[record.entity_id] = history
        history.append(record)

    def _compute(
        self, entity_id: str, history: list[ExecutionRecord], as_of: datetime
    ) -> EffectivenessMetrics:
        total = len(history)
        successful = sum(1 for r in history if r.success)
        failed = total - successful
        success_rate = successful / total
        error_rate = failed / total

        times = [r.execution_time_ms for r in history]
        saved = [r.tokens_saved for r in history]

        common_errors: dict[str, int] = {}
        for r in history:
            if not r.success and r.error_message:
                common_errors[r.error_message] = common_errors.get(r.error_message, 0) + 1

        ratings = [r.user_satisfaction for r in history if r.user_satisfaction is not None]
        average_satisfaction = stats.mean(ratings) if ratings else None

        average_time = stats.mean(times)
        average_saved = stats.mean(saved)

        score = stats.effectiveness_score(
            success_rate=success_rate,
            error_rate=error_rate,
            average_tokens_saved=average_saved,
            average_execution_time_ms=average_time,
            average_user_satisfaction=average_satisfaction,
            weights=self.weights,
        )

        return EffectivenessMetrics(
            entity_id=entity_id,
            total_executions=total,
            successful_executions=successful,
            failed_executions=failed,
            success_rate=success_rate,
            error_rate=error_rate,
            average_execution_time_ms=average_time,
            execution_time_std_dev=stats.std_dev(times),
            p95_execution_time_ms=stats.percentile(times, 0.95),
            average_tokens_saved=average_saved,
            total_tokens_saved=float(sum(saved)),
            token_savings_std_dev=stats.std_dev(saved),
            total_tokens_used=sum(r.tokens_used for r in history),
            common_errors=common_errors,
            average_user_satisfaction=average_satisfaction,
            user_satisfaction_count=len(ratings),
            effectiveness_score=score,
            last_24_hours=_window_stats(history, as_of, WINDOW_24H),
            last_7_days=_window_stats(history, as_of, WINDOW_7D),
            first_execution=min(r.timestamp for r in history),
            last_execution=max(r.timestamp for r in history),
            computed_at=as_of,
        )


def _window_stats(
    history: list[ExecutionRecord], as_of: datetime, window: timedelta
) -> WindowStats:
    in_window = [r for r in history if as_of - r.timestamp <= window]
    if not in_window:
        return WindowStats()
    n = len(in_window)
    successes = sum(1 for r in in_window if r.success)
    times = [r.execution_time_ms for r in in_window]
    return WindowStats(
        executions=n,
        success_rate=successes / n,
        error_rate=(n - successes) / n,
        average_tokens_saved=stats.mean([r.tokens_saved for r in in_window]),
        average_execution_time_ms=stats.mean(times),
        p95_execution_time_ms=stats.percentile(times, 0.95),
    )


def _grade(value: float, high: float, medium: float) -> AnomalySeverity:
    if value > high:
        return AnomalySeverity.HIGH
    if value > medium:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


def _tail(items: Sequence[Any] | deque, limit: int | None) -> list[Any]:
    if limit is None:
        return list(items)
    if limit <= 0:
        return []
    return list(items)[-limit:]
