"""
Email service for account notifications.
"""

import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

import jinja2
import structlog

from utilities.config import AppConfig, config

logger = structlog.get_logger(__name__)

_TEMPLATES = {
    "password_reset_request.html": """\
<p>Hello {{ first_name }},</p>
<p>Use the code below to reset your LegalGen password. It expires in {{ minutes }} minutes and can be used once.</p>
<p><strong>{{ token }}</strong></p>
<p>If you did not ask for a reset you can ignore this message.</p>
""",
    "password_reset_done.html": """\
<p>Hello {{ first_name }},</p>
<p>Your LegalGen password was reset on {{ when }} UTC.</p>
<p>If this was not you, request a new reset straight away.</p>
""",
}

template_env = jinja2.Environment(loader=jinja2.DictLoader(_TEMPLATES), autoescape=True)


class EmailService:
    """Email service for sending transactional emails"""

    def __init__(self, app_config: Optional[AppConfig] = None):
        self.config = app_config or config

    def _send_email(self, to_email: str, subject: str, html_content: str) -> None:
        """Send one message over SMTP. Blocking."""
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = formataddr((self.config.email_from_name, self.config.email_from))
        msg['To'] = to_email
        msg.attach(MIMEText(html_content, 'html'))

        with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=30) as server:
            if self.config.smtp_use_tls:
                server.starttls()
            server.login(self.config.smtp_username, self.config.smtp_password)
            server.send_message(msg)

    async def send_email(self, to_email: str, subject: str, template: str, **context) -> bool:
        """
        Render and send an email without blocking the event loop.

        Delivery is best effort: failures are logged and reported as False.
        """
        html_content = template_env.get_template(template).render(**context)

        if not self.config.smtp_configured():
            logger.info("SMTP not configured, email not sent", template=template, subject=subject)
            return False

        try:
            await asyncio.to_thread(self._send_email, to_email, subject, html_content)
            logger.info("Email sent successfully", template=template)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Email not sent", template=template, error=str(e))
            return False

    async def send_password_reset_token(self, to_email: str, first_name: str, token: str) -> bool:
        return await self.send_email(
            to_email,
            "Reset your LegalGen password",
            "password_reset_request.html",
            first_name=first_name,
            token=token,
            minutes=self.config.password_reset_token_minutes,
        )

    async def send_password_reset_confirmation(self, to_email: str, first_name: str, when: str) -> bool:
        return await self.send_email(
            to_email,
            "Your LegalGen password was reset",
            "password_reset_done.html",
            first_name=first_name,
            when=when,
        )
