"""Pydantic-settings configuration for the Skills monitoring engine.

Loads retention limits, notification channel credentials and logging
options from the environment (or a .env file) with sensible defaults for
local development. Every channel is disabled until explicitly enabled.
"""

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = "Skills Monitoring"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Retention limits
    metrics_history_limit: int = 1440  # 24h at 1-minute cadence
    execution_history_limit: int = 10000  # per entity
    alert_history_limit: int = 1000

    # Run anomaly detection after each recorded execution
    detect_anomalies_on_record: bool = False

    # Per-channel send deadline
    notification_timeout_seconds: float = 10.0

    # PagerDuty (paging channel)
    pagerduty_enabled: bool = False
    pagerduty_routing_key: str = ""
    pagerduty_api_url: str = "https://events.pagerduty.com/v2/enqueue"

    # Slack (chat channel)
    slack_enabled: bool = False
    slack_webhook_url: str = ""
    slack_channel: str = "#skills-alerts"

    # Email (SMTP)
    email_enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    alert_from: str = "alerts@skills-monitoring.local"
    alert_recipients: str = ""  # Comma-separated

    # Runbook links embedded in paging events
    runbook_base_url: str = "https://docs.example.com"

    @computed_field
    @property
    def alert_recipient_list(self) -> list[str]:
        """Parsed, whitespace-stripped list of email recipients."""
        return [r.strip() for r in self.alert_recipients.split(",") if r.strip()]


# Singleton instance
settings = Settings()
