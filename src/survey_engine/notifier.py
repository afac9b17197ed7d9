"""E-mail completion notifications over SMTP.

The notifier is disabled unless ``SMTP_HOST`` is set; a disabled notifier
logs and returns.  ``smtplib`` is blocking, so sending runs in a worker
thread to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import logging
import os
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from survey_engine.interfaces import Notifier
from survey_engine.prompt import PromptManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmtpSettings:
    host: str = ""
    port: int = 587
    user: str = ""
    password: str = ""
    sender: str = "Adaptive Survey <noreply@localhost>"
    site_url: str = "http://localhost:8000"

    @property
    def enabled(self) -> bool:
        return bool(self.host)


def load_smtp_settings() -> SmtpSettings:
    return SmtpSettings(
        host=os.getenv("SMTP_HOST", ""),
        port=int(os.getenv("SMTP_PORT", "587")),
        user=os.getenv("SMTP_USER", ""),
        password=os.getenv("SMTP_PASSWORD", ""),
        sender=os.getenv("EMAIL_FROM", "Adaptive Survey <noreply@localhost>"),
        site_url=os.getenv("SITE_URL", "http://localhost:8000"),
    )


class SmtpNotifier(Notifier):
    """Sends the completion e-mail rendered from ``completion_email.jinja2``."""

    def __init__(self, settings: SmtpSettings, prompts: PromptManager | None = None) -> None:
        self._settings = settings
        self._prompts = prompts or PromptManager()

    @classmethod
    def from_env(cls, prompts: PromptManager | None = None) -> SmtpNotifier:
        return cls(load_smtp_settings(), prompts)

    @property
    def settings(self) -> SmtpSettings:
        return self._settings

    def manage_url(self, preset_slug: str) -> str:
        return f"{self._settings.site_url.rstrip('/')}/presets/{preset_slug}/manage"

    async def notify_completion(
        self,
        *,
        to: str,
        preset_title: str,
        preset_slug: str,
        completed_count: int,
    ) -> None:
        if not self._settings.enabled:
            logger.info("SMTP_HOST not set, skipping notification: to=%s preset=%s", to, preset_slug)
            return

        subject = f"A new response has been completed - {preset_title}"
        html = self._prompts.render_completion_email(
            preset_title=preset_title,
            slug=preset_slug,
            completed_count=completed_count,
            manage_url=self.manage_url(preset_slug),
        )
        text = (
            f'A respondent has finished "{preset_title}" and their report is ready.\n'
            f"Completed responses so far: {completed_count}\n"
            f"{self.manage_url(preset_slug)}\n"
        )
        await asyncio.to_thread(self._send, to, subject, html, text)
        logger.info("Completion notification sent: to=%s preset=%s", to, preset_slug)

    def _send(self, to: str, subject: str, html: str, text: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._settings.sender
        msg["To"] = to
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))

        with smtplib.SMTP(self._settings.host, self._settings.port) as server:
            server.starttls()
            if self._settings.user and self._settings.password:
                server.login(self._settings.user, self._settings.password)
            server.sendmail(self._settings.sender, [to], msg.as_string())
