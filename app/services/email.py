"""
Out-of-band delivery of invitation and email-verification tokens.

Providers are tried in order: SendGrid, Mailgun, SMTP. With none configured
the message is logged at WARNING instead, which is what local development
and the test suite rely on. Delivery status is never read back by callers.
"""

import asyncio
import html
import logging
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

import httpx

from app.settings import settings

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
MAILGUN_URL = "https://api.mailgun.net/v3/{domain}/messages"
PROVIDER_TIMEOUT = 10.0


class EmailSender(Protocol):
    """What the services need from an email backend."""

    async def send_invitation(
        self, to_email: str, token: str, workspace_name: str, invited_by: str
    ) -> bool: ...

    async def send_verification(self, to_email: str, token: str) -> bool: ...


@dataclass(frozen=True)
class OutboundEmail:
    to_email: str
    subject: str
    html_body: str

    @property
    def text_body(self) -> str:
        text = re.sub(r"<[^>]+>", "", self.html_body)
        return re.sub(r"\s+", " ", html.unescape(text)).strip()


class EmailService:
    """Token mailer backed by SendGrid, Mailgun or plain SMTP."""

    def __init__(self):
        self.sender_address = settings.smtp_from_email
        self.sender_name = settings.smtp_from_name or settings.app_name

    @property
    def from_header(self) -> str:
        return f"{self.sender_name} <{self.sender_address}>"

    @property
    def is_configured(self) -> bool:
        return bool(
            settings.smtp_host
            or settings.sendgrid_api_key
            or (settings.mailgun_api_key and settings.mailgun_domain)
        )

    async def send_invitation(
        self, to_email: str, token: str, workspace_name: str, invited_by: str
    ) -> bool:
        accept_url = f"{settings.base_url}/invitations/{token}"
        workspace = html.escape(workspace_name)
        message = OutboundEmail(
            to_email=to_email,
            subject=f"You've been invited to {workspace_name} on {settings.app_name}",
            html_body=f"""
            <h2>You're invited!</h2>
            <p><strong>{html.escape(invited_by)}</strong> invited you to book rooms in
            <strong>{workspace}</strong>.</p>
            <p><a href="{accept_url}">Open invitation</a></p>
            <p>The invitation expires in {settings.invitation_ttl_days} days.</p>
            """,
        )
        return await self.deliver(message)

    async def send_verification(self, to_email: str, token: str) -> bool:
        verify_url = f"{settings.base_url}/verify-email?token={token}"
        message = OutboundEmail(
            to_email=to_email,
            subject=f"Verify your {settings.app_name} email address",
            html_body=f"""
            <h2>Confirm your email</h2>
            <p><a href="{verify_url}">Verify email address</a></p>
            <p>The link expires in {settings.email_verification_ttl_minutes} minutes.</p>
            """,
        )
        return await self.deliver(message)

    async def deliver(self, message: OutboundEmail) -> bool:
        """Send through the first configured provider; False when nothing was sent."""
        if settings.sendgrid_api_key:
            return await self._post_to_provider(
                "SendGrid",
                message,
                SENDGRID_URL,
                accepted=(200, 202),
                headers={"Authorization": f"Bearer {settings.sendgrid_api_key}"},
                json={
                    "personalizations": [{"to": [{"email": message.to_email}]}],
                    "from": {"email": self.sender_address, "name": self.sender_name},
                    "subject": message.subject,
                    "content": [
                        {"type": "text/plain", "value": message.text_body},
                        {"type": "text/html", "value": message.html_body},
                    ],
                },
            )

        if settings.mailgun_api_key and settings.mailgun_domain:
            return await self._post_to_provider(
                "Mailgun",
                message,
                MAILGUN_URL.format(domain=settings.mailgun_domain),
                accepted=(200,),
                auth=("api", settings.mailgun_api_key),
                data={
                    "from": self.from_header,
                    "to": message.to_email,
                    "subject": message.subject,
                    "text": message.text_body,
                    "html": message.html_body,
                },
            )

        if settings.smtp_host:
            return await self._send_via_smtp(message)

        logger.warning(
            f"No email provider configured; not sending '{message.subject}' "
            f"to {message.to_email}: {message.text_body[:300]}"
        )
        return False

    async def _post_to_provider(
        self,
        provider: str,
        message: OutboundEmail,
        url: str,
        accepted: tuple[int, ...],
        **request_kwargs,
    ) -> bool:
        try:
            async with httpx.AsyncClient(timeout=PROVIDER_TIMEOUT) as client:
                response = await client.post(url, **request_kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email via {provider}: {e}")
            return False

        if response.status_code not in accepted:
            logger.error(f"{provider} rejected email: {response.status_code} - {response.text}")
            return False
        logger.info(f"Email '{message.subject}' sent via {provider} to {message.to_email}")
        return True

    def _build_mime(self, message: OutboundEmail) -> EmailMessage:
        mime = EmailMessage()
        mime["Subject"] = message.subject
        mime["From"] = self.from_header
        mime["To"] = message.to_email
        mime.set_content(message.text_body)
        mime.add_alternative(message.html_body, subtype="html")
        return mime

    def _smtp_send(self, mime: EmailMessage) -> None:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_username and settings.smtp_password:
                server.login(settings.smtp_username, settings.smtp_password)
            server.send_message(mime)

    async def _send_via_smtp(self, message: OutboundEmail) -> bool:
        mime = self._build_mime(message)
        try:
            # smtplib blocks
            await asyncio.get_running_loop().run_in_executor(None, self._smtp_send, mime)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email via SMTP: {e}")
            return False
        logger.info(f"Email '{message.subject}' sent via SMTP to {message.to_email}")
        return True


email_service = EmailService()
