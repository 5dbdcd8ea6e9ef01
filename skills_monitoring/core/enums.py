"""Shared enumerations used across the metrics and alerting modules.

All enums use the (str, Enum) mixin pattern so their values are
serializable strings, compatible with JSON output for dashboards.
"""

from enum import Enum


class AlertSeverity(str, Enum):
    """Alert severity levels, most urgent first."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class AlertStatus(str, Enum):
    """Lifecycle status of an alert instance."""

    ACTIVE = "active"
    RESOLVED = "resolved"


class AlertChannel(str, Enum):
    """Notification channels an alert rule can route to."""

    PAGERDUTY = "pagerduty"
    SLACK = "slack"
    EMAIL = "email"


class NotificationEvent(str, Enum):
    """Lifecycle transition a notification attempt belongs to."""

    TRIGGER = "trigger"
    RESOLVE = "resolve"


class RankBy(str, Enum):
    """Dimension used to rank entities by effectiveness."""

    EFFECTIVENESS = "effectiveness"
    USAGE = "usage"
    SAVINGS = "savings"


class AnomalyType(str, Enum):
    """Kinds of performance anomaly detected on an entity."""

    SUCCESS_RATE_DROP = "success_rate_drop"
    EXECUTION_TIME_SPIKE = "execution_time_spike"
    TOKEN_SAVINGS_DROP = "token_savings_drop"
    ERROR_RATE_SPIKE = "error_rate_spike"


class AnomalySeverity(str, Enum):
    """Graded severity of a detected anomaly."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
