"""Skills monitoring -- health-metrics alerting and effectiveness tracking."""

__version__ = "0.1.0"
