# tasks/email_sender.py
"""
SnailMail delivery transport

Sends a finished delivery over SMTP with aiosmtplib. When no SMTP
credentials are configured the message is written to the log instead and
still counts as delivered.
"""

import asyncio
import functools
import uuid
import logging
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate
from typing import Any, Dict, Optional

import aiosmtplib

from core.template_engine import DeliveryTemplateEngine, RenderedEmail
from core.transport import format_delivery_time

logger = logging.getLogger(__name__)

CONSOLE_RULE = '=' * 61
CONSOLE_DIVIDER = '-' * 61


class EmailSenderError(Exception):
    """Base exception for email sending operations"""
    pass


class SMTPConfigurationError(EmailSenderError):
    """SMTP configuration related errors"""
    pass


@dataclass
class SMTPSettings:
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 60.0

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'SMTPSettings':
        return cls(
            host=config.get('SMTP_HOST', 'smtp.gmail.com'),
            port=int(config.get('SMTP_PORT', 587)),
            username=config.get('EMAIL_USER'),
            password=config.get('EMAIL_PASS'),
            timeout=float(config.get('SMTP_TIMEOUT', 60.0)),
        )


class SnailMailSender:
    """Delivers finished jobs by SMTP or to the console"""

    def __init__(self, settings: SMTPSettings,
                 template_engine: Optional[DeliveryTemplateEngine] = None):
        self.settings = settings
        self.template_engine = template_engine or DeliveryTemplateEngine()
        if not settings.configured:
            logger.warning('Email credentials not configured. Emails will be logged to console only.')

    @property
    def mode(self) -> str:
        return 'smtp' if self.settings.configured else 'console'

    async def deliver(self, job) -> None:
        """Send the job's message; raises EmailSenderError on failure"""
        # premailer and BeautifulSoup are blocking; keep them off the job loop
        loop = asyncio.get_running_loop()
        rendered = await loop.run_in_executor(None, functools.partial(
            self.template_engine.render,
            transport_mode=job.transport_mode.value,
            subject=job.subject,
            message=job.message,
            delivery_time_seconds=job.delivery_time_seconds,
        ))

        if not self.settings.configured:
            self._log_to_console(job)
            return

        msg = self.build_message(job, rendered)
        await self._send_smtp(msg)
        logger.info(f"Email delivered: {job.id}")

    def build_message(self, job, rendered: RenderedEmail) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = rendered.subject
        msg['From'] = job.sender
        msg['To'] = job.recipient
        msg['Date'] = formatdate(localtime=True)
        msg['Message-ID'] = f"<{uuid.uuid4()}@{self._domain(job.sender)}>"
        msg['X-SnailMail-Job-ID'] = job.id
        msg['X-SnailMail-Transport'] = job.transport_mode.value

        msg.attach(MIMEText(rendered.text or job.message, 'plain', 'utf-8'))
        msg.attach(MIMEText(rendered.html, 'html', 'utf-8'))
        return msg

    def _client(self) -> aiosmtplib.SMTP:
        settings = self.settings
        start_tls = None  # opportunistic STARTTLS
        if settings.port == 587:
            start_tls = True
        elif settings.port == 465:
            start_tls = False
        return aiosmtplib.SMTP(
            hostname=settings.host,
            port=settings.port,
            timeout=settings.timeout,
            use_tls=settings.port == 465,  # Implicit TLS for port 465
            start_tls=start_tls,
        )

    async def _send_smtp(self, msg: MIMEMultipart) -> None:
        settings = self.settings
        smtp = self._client()
        try:
            await smtp.connect()
            await smtp.login(settings.username, settings.password)
            await smtp.send_message(msg)
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP delivery failed: {e}")
            raise EmailSenderError(f"SMTP delivery failed: {e}") from e
        finally:
            if smtp.is_connected:
                try:
                    await smtp.quit()
                except aiosmtplib.SMTPException as e:
                    logger.debug(f"SMTP quit failed: {e}")

    async def verify_connection(self) -> bool:
        """Check that the SMTP server accepts our credentials"""
        if not self.settings.configured:
            raise SMTPConfigurationError('Email credentials not configured')

        settings = self.settings
        smtp = self._client()
        try:
            await smtp.connect()
            await smtp.login(settings.username, settings.password)
            await smtp.quit()
            return True
        except aiosmtplib.SMTPException as e:
            logger.warning(f"SMTP verification failed: {e}")
            return False

    @staticmethod
    def _domain(address: str) -> str:
        return address.rsplit('@', 1)[-1] if '@' in address else 'localhost'

    @staticmethod
    def _log_to_console(job) -> None:
        logger.info(
            '\n'.join([
                '',
                CONSOLE_RULE,
                f"SnailMail Delivery ({job.transport_mode.value})",
                CONSOLE_RULE,
                f"From: {job.sender}",
                f"To: {job.recipient}",
                f"Subject: {job.subject}",
                f"Delivery Time: {format_delivery_time(job.delivery_time_seconds)}",
                CONSOLE_DIVIDER,
                f"Message:\n{job.message}",
                CONSOLE_RULE,
            ])
        )
