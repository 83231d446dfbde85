"""Tests for token email delivery."""

import json
import logging

import httpx
import pytest

from app.services import email as email_module
from app.services.email import EmailService, OutboundEmail
from app.settings import settings


@pytest.fixture
def no_providers(monkeypatch):
    for name in ("sendgrid_api_key", "mailgun_api_key", "mailgun_domain", "smtp_host"):
        monkeypatch.setattr(settings, name, None)


@pytest.fixture
def captured_requests(monkeypatch):
    """Route the service's httpx clients to an in-process handler."""
    captured: list[httpx.Request] = []
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(202)

    monkeypatch.setattr(
        email_module.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    return captured


class TestOutboundEmail:
    """Test the outbound message value."""

    def test_text_body_strips_markup(self):
        """Test plain text derived from the HTML body."""
        message = OutboundEmail("a@example.com", "Hi", "<p>Rock &amp; <b>Roll</b></p>\n  <p>now</p>")
        assert message.text_body == "Rock & Roll now"


class TestEmailService:
    """Test provider selection and delivery."""

    async def test_without_provider_logs_and_returns_false(self, no_providers, caplog):
        """Test the log-only fallback with no provider configured."""
        service = EmailService()
        assert not service.is_configured

        with caplog.at_level(logging.WARNING, logger="app.services.email"):
            sent = await service.send_verification("new@example.com", "tok123")

        assert sent is False
        assert "new@example.com" in caplog.text

    async def test_invitation_via_sendgrid(self, no_providers, captured_requests, monkeypatch):
        """Test SendGrid delivery of an invitation."""
        monkeypatch.setattr(settings, "sendgrid_api_key", "SG.test")
        service = EmailService()

        sent = await service.send_invitation(
            "guest@example.com", "tok123", "R&D <Lab>", invited_by="admin@example.com"
        )

        assert sent is True
        request = captured_requests[0]
        assert request.url == httpx.URL(email_module.SENDGRID_URL)
        assert request.headers["Authorization"] == "Bearer SG.test"
        payload = json.loads(request.content)
        assert payload["personalizations"][0]["to"][0]["email"] == "guest@example.com"
        html_body = payload["content"][1]["value"]
        assert f"{settings.base_url}/invitations/tok123" in html_body
        assert "R&amp;D &lt;Lab&gt;" in html_body

    async def test_provider_rejection(self, no_providers, monkeypatch):
        """Test that a rejected provider call reports failure."""
        monkeypatch.setattr(settings, "mailgun_api_key", "key-test")
        monkeypatch.setattr(settings, "mailgun_domain", "mg.example.com")
        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            email_module.httpx,
            "AsyncClient",
            lambda **kwargs: real_client(
                transport=httpx.MockTransport(lambda request: httpx.Response(401)), **kwargs
            ),
        )

        sent = await EmailService().send_verification("new@example.com", "tok123")
        assert sent is False
