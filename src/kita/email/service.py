"""
Email service with provider abstraction.

Supports Resend (default), SMTP and AWS SES.
Provider is selected via configuration. Providers never raise on delivery
failure; they log and return False so callers decide what a failed send means.
"""

from __future__ import annotations

import hashlib
import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

import structlog

from kita.config import get_settings
from kita.email.templates import (
    membership_free,
    membership_pending,
    password_changed,
    password_reset_code,
)

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

# Template registry: name -> function(**context) -> (subject, html, text)
_TEMPLATE_REGISTRY: dict[str, Callable[..., tuple[str, str, str]]] = {
    "password_reset_code": password_reset_code,
    "password_changed": password_changed,
    "membership_pending": membership_pending,
    "membership_free": membership_free,
}


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    name = "base"

    @abstractmethod
    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send an email. Returns True on success."""
        ...


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via SMTP."""
        import aiosmtplib

        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=tls_context,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.exception("email_send_failed", to=to_email, provider=self.name)
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider=self.name)
        return True


class ResendProvider(BaseEmailProvider):
    """Send emails via the Resend HTTP API."""

    name = "resend"
    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: str, from_address: str, from_name: str) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via Resend."""
        import httpx

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": f"{self.from_name} <{self.from_address}>",
                        "to": [to_email],
                        "subject": subject,
                        "html": html_body,
                        "text": text_body,
                    },
                    timeout=10.0,
                )
                response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("email_send_failed", to=to_email, provider=self.name)
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider=self.name)
        return True


class SESProvider(BaseEmailProvider):
    """Send emails via AWS SES."""

    name = "ses"

    def __init__(self, region: str, from_address: str, from_name: str) -> None:
        self.region = region
        self.from_address = from_address
        self.from_name = from_name

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via AWS SES."""
        import aioboto3
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            session = aioboto3.Session()
            async with session.client("ses", region_name=self.region) as ses:
                await ses.send_email(
                    Source=f"{self.from_name} <{self.from_address}>",
                    Destination={"ToAddresses": [to_email]},
                    Message={
                        "Subject": {"Data": subject, "Charset": "UTF-8"},
                        "Body": {
                            "Text": {"Data": text_body, "Charset": "UTF-8"},
                            "Html": {"Data": html_body, "Charset": "UTF-8"},
                        },
                    },
                )
        except (BotoCoreError, ClientError):
            logger.exception("email_send_failed", to=to_email, provider=self.name)
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider=self.name)
        return True


def _create_provider() -> BaseEmailProvider:
    """Create email provider based on configuration."""
    settings = get_settings()
    provider_name = settings.email_provider.lower()

    if provider_name == "resend":
        return ResendProvider(
            api_key=settings.resend_api_key,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == "ses":
        return SESProvider(
            region=settings.ses_region,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


def render_template(template_name: str, context: dict[str, str]) -> tuple[str, str, str]:
    """
    Render a registered template.

    Raises:
        ValueError: Unknown template name or missing context keys.
    """
    template_func = _TEMPLATE_REGISTRY.get(template_name)
    if template_func is None:
        msg = f"Unknown template: {template_name}"
        raise ValueError(msg)
    try:
        return template_func(**context)
    except TypeError as e:
        msg = f"Bad context for template {template_name}: {e}"
        raise ValueError(msg) from e


class EmailService:
    """
    High-level email service.

    Handles per-recipient rate limiting and template rendering.
    """

    RATE_LIMIT_WINDOW = 3600

    def __init__(
        self,
        provider: BaseEmailProvider | None = None,
        redis: Redis | None = None,
        max_per_hour: int | None = None,
    ) -> None:
        self.provider = provider or _create_provider()
        self._redis = redis
        self.max_per_hour = max_per_hour or get_settings().email_rate_limit_per_hour

    async def _check_rate_limit(self, email: str) -> bool:
        """Check if we can send another email to this address."""
        if self._redis is None:
            return True
        key = f"email_rate:{hashlib.sha256(email.lower().encode()).hexdigest()}"
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self.RATE_LIMIT_WINDOW)
        return count <= self.max_per_hour

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """
        Send an email with rate limiting.

        Returns True if sent, False if rate limited or failed.
        """
        if not await self._check_rate_limit(to):
            logger.warning("email_rate_limited", to=to, subject=subject)
            return False
        return await self.provider.send(to, subject, html_body, text_body)

    async def send_template(
        self,
        to: str,
        template_name: str,
        context: dict[str, str],
    ) -> bool:
        """Render ``template_name`` with ``context`` and send it to ``to``."""
        subject, html_body, text_body = render_template(template_name, context)
        return await self.send_email(to, subject, html_body, text_body)


# Module-level singleton
_email_service: EmailService | None = None


def get_email_service(redis: Redis | None = None) -> EmailService:
    """Get or create the email service singleton."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=redis)
    return _email_service


def reset_email_service() -> None:
    """Reset the email service singleton (for testing)."""
    global _email_service  # noqa: PLW0603
    _email_service = None
