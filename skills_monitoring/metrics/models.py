"""Data models for health snapshots, execution records and derived metrics.

Snapshots and execution records are immutable once recorded. The
effectiveness and anomaly objects are derived on read from the retained
history and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from skills_monitoring.core.enums import AnomalySeverity, AnomalyType


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat a naive datetime as UTC; aware values pass through unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Recorded inputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class MetricSnapshot:
    """One point-in-time reading of aggregate Skills health metrics.

    Attributes:
        error_rate: Skill execution error rate, percent (0-100).
        timeout_rate: Skill timeout rate, percent (0-100).
        p95_response_time_ms: 95th percentile response latency.
        average_response_time_ms: Mean response latency.
        hourly_cost: AI spend over the last hour (USD).
        cost_spike_percentage: Hourly cost relative to baseline, percent.
        cache_hit_rate: Skill cache hit rate, percent (0-100).
        service_health: 1 when the service is healthy, 0 when down.
        timestamp: When the reading was taken.
    """

    error_rate: float = 0.0
    timeout_rate: float = 0.0
    p95_response_time_ms: float = 0.0
    average_response_time_ms: float = 0.0
    hourly_cost: float = 0.0
    cost_spike_percentage: float = 0.0
    cache_hit_rate: float = 100.0
    service_health: int = 1
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_rate": self.error_rate,
            "timeout_rate": self.timeout_rate,
            "p95_response_time_ms": self.p95_response_time_ms,
            "average_response_time_ms": self.average_response_time_ms,
            "hourly_cost": self.hourly_cost,
            "cost_spike_percentage": self.cost_spike_percentage,
            "cache_hit_rate": self.cache_hit_rate,
            "service_health": self.service_health,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ExecutionRecord:
    """One completed unit of work tied to an entity (e.g. a skill).

    Attributes:
        entity_id: Skill or task identifier.
        success: Whether the execution completed successfully.
        execution_time_ms: Wall time spent executing.
        tokens_used: Tokens consumed by the execution.
        tokens_saved: Savings ratio (0-1) or absolute saved-token count.
        error_message: Failure description, if any.
        user_satisfaction: Optional 1-5 rating.
        cost: Spend attributed to the execution (USD).
        timestamp: Completion time.
    """

    entity_id: str
    success: bool
    execution_time_ms: float
    tokens_used: int = 0
    tokens_saved: float = 0.0
    error_message: str | None = None
    user_satisfaction: float | None = None
    cost: float = 0.0
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "success": self.success,
            "execution_time_ms": self.execution_time_ms,
            "tokens_used": self.tokens_used,
            "tokens_saved": self.tokens_saved,
            "error_message": self.error_message,
            "user_satisfaction": self.user_satisfaction,
            "cost": self.cost,
            "timestamp": self.timestamp.isoformat(),
        }


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class WindowStats:
    """Aggregate over the records falling inside a rolling window."""

    executions: int = 0
    success_rate: float = 0.0
    error_rate: float = 0.0
    average_tokens_saved: float = 0.0
    average_execution_time_ms: float = 0.0
    p95_execution_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "executions": self.executions,
            "success_rate": self.success_rate,
            "error_rate": self.error_rate,
            "average_tokens_saved": self.average_tokens_saved,
            "average_execution_time_ms": self.average_execution_time_ms,
            "p95_execution_time_ms": self.p95_execution_time_ms,
        }


@dataclass(frozen=True)
class ExecutionStats:
    """Cross-entity aggregate of every execution inside one timeframe."""

    window_seconds: float
    executions: int = 0
    success_rate: float = 0.0
    average_execution_time_ms: float = 0.0
    average_tokens_saved: float = 0.0
    total_cost: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_seconds": self.window_seconds,
            "executions": self.executions,
            "success_rate": self.success_rate,
            "average_execution_time_ms": self.average_execution_time_ms,
            "average_tokens_saved": self.average_tokens_saved,
            "total_cost": self.total_cost,
        }


@dataclass(frozen=True)
class EffectivenessMetrics:
    """Per-entity aggregate computed from its retained execution history.

    Attributes:
        entity_id: Entity the aggregate belongs to.
        total_executions: Retained executions (all time).
        successful_executions: Successful retained executions.
        failed_executions: Failed retained executions.
        success_rate: Successful / total, 0-1.
        error_rate: Failed / total, 0-1.
        average_execution_time_ms: Mean execution time.
        execution_time_std_dev: Population std dev of execution time.
        p95_execution_time_ms: Nearest-rank 95th percentile execution time.
        average_tokens_saved: Mean savings per execution.
        total_tokens_saved: Sum of savings.
        token_savings_std_dev: Population std dev of savings.
        total_tokens_used: Sum of tokens consumed.
        common_errors: Error message -> occurrence count (failures only).
        average_user_satisfaction: Mean rating, ``None`` when never rated.
        user_satisfaction_count: Number of rated executions.
        effectiveness_score: Composite 0-1 score.
        last_24_hours: Rolling 24h aggregate.
        last_7_days: Rolling 7-day aggregate.
        first_execution: Oldest retained execution time.
        last_execution: Newest retained execution time.
        computed_at: Reference time the rolling windows were evaluated at.
    """

    entity_id: str
    total_executions: int
    successful_executions: int
    failed_executions: int
    success_rate: float
    error_rate: float
    average_execution_time_ms: float
    execution_time_std_dev: float
    p95_execution_time_ms: float
    average_tokens_saved: float
    total_tokens_saved: float
    token_savings_std_dev: float
    total_tokens_used: int
    common_errors: dict[str, int]
    average_user_satisfaction: float | None
    user_satisfaction_count: int
    effectiveness_score: float
    last_24_hours: WindowStats
    last_7_days: WindowStats
    first_execution: datetime
    last_execution: datetime
    computed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "total_executions": self.total_executions,
            "successful_executions": self.successful_executions,
            "failed_executions": self.failed_executions,
            "success_rate": self.success_rate,
            "error_rate": self.error_rate,
            "average_execution_time_ms": self.average_execution_time_ms,
            "execution_time_std_dev": self.execution_time_std_dev,
            "p95_execution_time_ms": self.p95_execution_time_ms,
            "average_tokens_saved": self.average_tokens_saved,
            "total_tokens_saved": self.total_tokens_saved,
            "token_savings_std_dev": self.token_savings_std_dev,
            "total_tokens_used": self.total_tokens_used,
            "common_errors": dict(self.common_errors),
            "average_user_satisfaction": self.average_user_satisfaction,
            "user_satisfaction_count": self.user_satisfaction_count,
            "effectiveness_score": self.effectiveness_score,
            "last_24_hours": self.last_24_hours.to_dict(),
            "last_7_days": self.last_7_days.to_dict(),
            "first_execution": self.first_execution.isoformat(),
            "last_execution": self.last_execution.isoformat(),
            "computed_at": self.computed_at.isoformat(),
        }


@dataclass(frozen=True)
class AnomalyDetectionResult:
    """A detected deviation of recent (24h) behavior from the baseline."""

    entity_id: str
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    message: str
    current: float
    baseline: float
    deviation: float
    detected_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "current": self.current,
            "baseline": self.baseline,
            "deviation": self.deviation,
            "detected_at": self.detected_at.isoformat(),
        }
