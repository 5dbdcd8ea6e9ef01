"""Root pytest configuration and shared fixtures.

Provides common test fixtures used across all test modules:
- make_snapshot: factory for MetricSnapshot with healthy defaults
- healthy_snapshot: a snapshot that triggers no default rule
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from skills_monitoring.metrics.models import MetricSnapshot

HEALTHY_VALUES: dict[str, Any] = {
    "error_rate": 0.5,
    "timeout_rate": 0.2,
    "p95_response_time_ms": 1200.0,
    "average_response_time_ms": 450.0,
    "hourly_cost": 3.25,
    "cost_spike_percentage": 100.0,
    "cache_hit_rate": 85.0,
    "service_health": 1,
}


@pytest.fixture
def make_snapshot() -> Callable[..., MetricSnapshot]:
    """Return a factory building snapshots from healthy defaults.

    Usage::

        def test_something(make_snapshot):
            snapshot = make_snapshot(error_rate=10)
    """
    def _make(**overrides: Any) -> MetricSnapshot:
        return MetricSnapshot(**{**HEALTHY_VALUES, **overrides})
    return _make


@pytest.fixture
def healthy_snapshot(make_snapshot: Callable[..., MetricSnapshot]) -> MetricSnapshot:
    return make_snapshot()
