"""SMTP email channel delivering plain-text alert digests.

``smtplib`` is blocking, so each send runs in a worker thread via
``asyncio.to_thread``; the SMTP socket timeout mirrors the channel
deadline.
"""

from __future__ import annotations

import asyncio
import smtplib
from email.mime.text import MIMEText

from skills_monitoring.core.enums import AlertChannel
from skills_monitoring.monitoring.alert_rules import AlertThreshold
from skills_monitoring.monitoring.formatting import format_alert_email
from skills_monitoring.monitoring.models import Alert
from skills_monitoring.monitoring.notifiers.base import (
    NotificationChannel,
    NotificationError,
)


class EmailChannel(NotificationChannel):
    """Send alert emails through an SMTP relay.

    Parameters:
        host: SMTP host.
        port: SMTP port; STARTTLS is used on 587.
        sender: From address.
        recipients: To addresses.
        user: Optional SMTP login.
        password: Optional SMTP password.
    """

    CHANNEL = AlertChannel.EMAIL

    def __init__(
        self,
        host: str,
        recipients: list[str],
        port: int = 587,
        sender: str = "alerts@skills-monitoring.local",
        user: str = "",
        password: str = "",
        timeout_seconds: float = 10.0,
    ) -> None:
        super().__init__(timeout_seconds)
        self.host = host
        self.port = port
        self.sender = sender
        self.recipients = list(recipients)
        self.user = user
        self.password = password

    @property
    def enabled(self) -> bool:
        return bool(self.host) and bool(self.recipients)

    def build_message(self, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = ", ".join(self.recipients)
        return msg

    async def send_alert(self, alert: Alert, threshold: AlertThreshold) -> None:
        subject = f"[{alert.severity.value.upper()}] {alert.name}"
        await self.send_report(subject, format_alert_email(alert, threshold))

    async def send_report(self, subject: str, body: str) -> None:
        """Send an arbitrary plain-text report (e.g. the daily summary)."""
        if not self.enabled:
            raise NotificationError("SMTP host or recipients not configured")
        msg = self.build_message(subject, body)
        await asyncio.to_thread(self._deliver, msg)

    def _deliver(self, msg: MIMEText) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as server:
                if self.port == 587:
                    server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.sendmail(self.sender, self.recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"SMTP delivery failed: {exc}") from exc
