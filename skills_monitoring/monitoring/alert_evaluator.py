"""AlertEvaluator -- stateless evaluation of threshold rules against a snapshot.

This module is pure computation -- no state, no I/O.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from skills_monitoring.core.utils.logging_config import get_logger
from skills_monitoring.metrics.models import MetricSnapshot
from skills_monitoring.monitoring.alert_rules import DEFAULT_THRESHOLDS, AlertThreshold

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuleEvaluation:
    """Outcome of one rule against one snapshot.

    ``error`` is set when the rule's condition raised; such a rule is
    neither triggered nor eligible for resolution on this tick.
    """

    threshold: AlertThreshold
    triggered: bool
    error: str | None = None


class AlertEvaluator:
    """Evaluate every rule's condition against a snapshot."""

    def evaluate(
        self,
        snapshot: MetricSnapshot,
        rules: Sequence[AlertThreshold] = DEFAULT_THRESHOLDS,
    ) -> list[RuleEvaluation]:
        results: list[RuleEvaluation] = []
        for rule in rules:
            try:
                triggered = bool(rule.condition(snapshot))
            except Exception as exc:
                logger.warning("rule_check_error", rule_id=rule.id, error=str(exc))
                results.append(RuleEvaluation(rule, False, error=str(exc)))
                continue
            results.append(RuleEvaluation(rule, triggered))
        return results
