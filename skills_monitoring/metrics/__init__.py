"""Metrics package -- bounded health/execution history and effectiveness.

Provides:
- MetricsStore: Snapshot and execution retention with derived statistics
- MetricSnapshot / ExecutionRecord: Immutable recorded inputs
- EffectivenessMetrics: Per-entity aggregate with rolling windows
"""

from skills_monitoring.metrics.metrics_store import AnomalyThresholds, MetricsStore
from skills_monitoring.metrics.models import (
    AnomalyDetectionResult,
    EffectivenessMetrics,
    ExecutionRecord,
    ExecutionStats,
    MetricSnapshot,
    WindowStats,
)

__all__ = [
    "AnomalyDetectionResult",
    "AnomalyThresholds",
    "EffectivenessMetrics",
    "ExecutionRecord",
    "ExecutionStats",
    "MetricSnapshot",
    "MetricsStore",
    "WindowStats",
]
