"""Monitoring package -- alert evaluation, lifecycle and notifications.

Provides:
- AlertLifecycleManager: Create/refresh/resolve alerts per tick, fan out notifications
- AlertEvaluator: Stateless evaluation of the rule table against a snapshot
- AlertThreshold: Threshold rule dataclass
- DEFAULT_THRESHOLDS: 7 pre-defined rules (3 critical, 3 warning, 1 info)
"""

from skills_monitoring.monitoring.alert_evaluator import AlertEvaluator, RuleEvaluation
from skills_monitoring.monitoring.alert_manager import AlertLifecycleManager
from skills_monitoring.monitoring.alert_rules import DEFAULT_THRESHOLDS, AlertThreshold
from skills_monitoring.monitoring.models import Alert, DailySummary, NotificationAttempt

__all__ = [
    "Alert",
    "AlertEvaluator",
    "AlertLifecycleManager",
    "AlertThreshold",
    "DEFAULT_THRESHOLDS",
    "DailySummary",
    "NotificationAttempt",
    "RuleEvaluation",
]
