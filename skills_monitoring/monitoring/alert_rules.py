"""Alert threshold definitions for the Skills monitoring system.

Provides the fixed table of seven threshold rules covering service
health, error and timeout rates, latency, cache efficiency and cost.
Each rule carries a pure ``condition`` over a ``MetricSnapshot`` that
returns ``True`` when the alert should fire, plus its routing metadata.

``duration`` is operator-facing metadata only: rules are evaluated
statelessly per tick with no sustained-duration debouncing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from skills_monitoring.core.enums import AlertChannel, AlertSeverity
from skills_monitoring.metrics.models import MetricSnapshot

# ---------------------------------------------------------------------------
# AlertThreshold dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AlertThreshold:
    """A single evaluatable alert rule.

    Attributes:
        id: Unique identifier (e.g. ``"skills-service-down"``).
        name: Human-readable rule name.
        description: What condition this rule detects.
        severity: ``critical``, ``warning`` or ``info``.
        condition: ``(snapshot) -> bool`` -- returns ``True`` to fire.
        threshold: Human-readable threshold expression.
        duration: Sustained duration the rule describes (informational).
        channels: Ordered notification channels to fan out to.
        escalation_policy: Optional escalation policy tag.
        runbook_url: Optional runbook reference.
    """

    id: str
    name: str
    description: str
    severity: AlertSeverity
    condition: Callable[[MetricSnapshot], bool]
    threshold: str
    duration: str
    channels: tuple[AlertChannel, ...] = field(default_factory=tuple)
    escalation_policy: str | None = None
    runbook_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "severity": self.severity.value,
            "threshold": self.threshold,
            "duration": self.duration,
            "channels": [c.value for c in self.channels],
            "escalation_policy": self.escalation_policy,
            "runbook_url": self.runbook_url,
        }


# ---------------------------------------------------------------------------
# Conditions -- each receives a snapshot and returns bool
# ---------------------------------------------------------------------------


def _service_down(m: MetricSnapshot) -> bool:
    return m.service_health == 0


def _high_error_rate(m: MetricSnapshot) -> bool:
    return m.error_rate > 5


def _response_time_critical(m: MetricSnapshot) -> bool:
    return m.p95_response_time_ms > 10000


def _elevated_timeout_rate(m: MetricSnapshot) -> bool:
    return m.timeout_rate > 5


def _low_cache_hit_rate(m: MetricSnapshot) -> bool:
    return m.cache_hit_rate < 30


def _cost_spike(m: MetricSnapshot) -> bool:
    return m.cost_spike_percentage > 150


def _cache_warmup_needed(m: MetricSnapshot) -> bool:
    return m.cache_hit_rate < 40


# ---------------------------------------------------------------------------
# Default rule table
# ---------------------------------------------------------------------------

DEFAULT_THRESHOLDS: tuple[AlertThreshold, ...] = (
    # Critical -- paged
    AlertThreshold(
        id="skills-service-down",
        name="Skills Service Down",
        description="Skills service health check failure",
        severity=AlertSeverity.CRITICAL,
        condition=_service_down,
        threshold="service.health == 0",
        duration="1 minute",
        channels=(AlertChannel.PAGERDUTY, AlertChannel.SLACK),
        escalation_policy="oncall-engineering",
        runbook_url="/docs/runbooks/incident-response.md#sev1-complete-skills-outage",
    ),
    AlertThreshold(
        id="high-skill-error-rate",
        name="High Skill Error Rate",
        description="Skill execution error rate exceeds 5%",
        severity=AlertSeverity.CRITICAL,
        condition=_high_error_rate,
        threshold="skill_error_rate > 5%",
        duration="5 minutes",
        channels=(AlertChannel.PAGERDUTY, AlertChannel.SLACK),
        escalation_policy="oncall-engineering",
        runbook_url="/docs/runbooks/incident-response.md#sev1-high-error-rate",
    ),
    AlertThreshold(
        id="skills-response-time-critical",
        name="Skills Response Time Critical",
        description="p95 skill response time exceeds 10 seconds",
        severity=AlertSeverity.CRITICAL,
        condition=_response_time_critical,
        threshold="p95_skill_response > 10s",
        duration="5 minutes",
        channels=(AlertChannel.PAGERDUTY, AlertChannel.SLACK),
        escalation_policy="oncall-engineering",
        runbook_url="/docs/runbooks/performance-tuning.md#slow-response-times",
    ),
    # Warning -- chat + email
    AlertThreshold(
        id="elevated-skill-timeout-rate",
        name="Elevated Skill Timeout Rate",
        description="Skill timeout rate exceeds 5%",
        severity=AlertSeverity.WARNING,
        condition=_elevated_timeout_rate,
        threshold="skill_timeout_rate > 5%",
        duration="10 minutes",
        channels=(AlertChannel.SLACK, AlertChannel.EMAIL),
        runbook_url="/docs/runbooks/performance-tuning.md#timeout-issues",
    ),
    AlertThreshold(
        id="low-cache-hit-rate",
        name="Low Cache Hit Rate",
        description="Skill cache hit rate below 30%",
        severity=AlertSeverity.WARNING,
        condition=_low_cache_hit_rate,
        threshold="skill_cache_hit_rate < 30%",
        duration="15 minutes",
        channels=(AlertChannel.SLACK, AlertChannel.EMAIL),
        runbook_url="/docs/runbooks/performance-tuning.md#cache-optimization",
    ),
    AlertThreshold(
        id="cost-spike-detected",
        name="Cost Spike Detected",
        description="Hourly AI cost exceeds 150% of baseline",
        severity=AlertSeverity.WARNING,
        condition=_cost_spike,
        threshold="cost_spike > 150%",
        duration="immediate",
        channels=(AlertChannel.SLACK, AlertChannel.EMAIL),
        runbook_url="/docs/runbooks/cost-optimization.md#investigating-cost-spikes",
    ),
    # Info -- email only
    AlertThreshold(
        id="cache-warmup-needed",
        name="Cache Warmup Needed",
        description="Cache hit rate below 40% during peak hours",
        severity=AlertSeverity.INFO,
        condition=_cache_warmup_needed,
        threshold="cache_hit_rate < 40%",
        duration="30 minutes",
        channels=(AlertChannel.EMAIL,),
    ),
)


def get_threshold(threshold_id: str) -> AlertThreshold:
    """Look up a default rule by id."""
    for rule in DEFAULT_THRESHOLDS:
        if rule.id == threshold_id:
            return rule
    raise KeyError(f"Unknown alert threshold: {threshold_id}")
