"""Tests for email service and templates."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kita.email.service import (
    _TEMPLATE_REGISTRY,
    BaseEmailProvider,
    EmailService,
    ResendProvider,
    SESProvider,
    SMTPProvider,
    _create_provider,
    render_template,
)
from kita.email.templates import (
    membership_free,
    membership_pending,
    password_changed,
    password_reset_code,
)


class TestEmailTemplates:
    def test_password_reset_code(self):
        subject, html, text = password_reset_code("Maria", "482913", "10")
        assert "password reset" in subject.lower()
        assert "482913" in html
        assert "482913" in text
        assert "10 minutes" in text
        assert "Maria" in html

    def test_password_changed(self):
        subject, html, text = password_changed("Maria")
        assert "password" in subject.lower()
        assert "Maria" in html
        assert "Maria" in text

    def test_membership_pending(self):
        subject, html, text = membership_pending("Maria", "Monthly Hot Desk", "1,500.00", "mem_kita2025_0001", "Gcash")
        assert "pending" in subject.lower()
        assert "mem_kita2025_0001" in html
        assert "mem_kita2025_0001" in text
        assert "PHP 1,500.00" in text

    def test_membership_free(self):
        subject, html, text = membership_free("Maria", "Monthly Hot Desk", "FREEMONTH", "June 01, 2025", "July 01, 2025")
        assert "active" in subject.lower()
        assert "FREEMONTH" in html
        assert "July 01, 2025" in text

    def test_html_is_escaped(self):
        _subject, html, _text = password_changed("<script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html


class TestTemplateRegistry:
    def test_registered_templates(self):
        assert set(_TEMPLATE_REGISTRY) == {
            "password_reset_code",
            "password_changed",
            "membership_pending",
            "membership_free",
        }

    def test_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown template"):
            render_template("welcome", {})

    def test_missing_context(self):
        with pytest.raises(ValueError, match="Bad context"):
            render_template("password_reset_code", {"name": "Maria"})


class _RecordingProvider(BaseEmailProvider):
    name = "recording"

    def __init__(self, result: bool = True) -> None:
        self.sent: list[tuple[str, str]] = []
        self.result = result

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        self.sent.append((to_email, subject))
        return self.result


@pytest.mark.asyncio
class TestEmailService:
    async def test_send_template(self):
        provider = _RecordingProvider()
        service = EmailService(provider=provider)
        sent = await service.send_template(to="maria@example.com", template_name="password_changed", context={"name": "Maria"})
        assert sent is True
        assert provider.sent == [("maria@example.com", "Your password has been changed")]

    async def test_provider_failure_is_reported(self):
        service = EmailService(provider=_RecordingProvider(result=False))
        assert await service.send_email("maria@example.com", "s", "<p>h</p>", "t") is False

    async def test_per_recipient_cap(self, fake_redis):
        provider = _RecordingProvider()
        service = EmailService(provider=provider, redis=fake_redis, max_per_hour=2)
        results = [await service.send_email("maria@example.com", "s", "h", "t") for _ in range(3)]
        assert results == [True, True, False]
        assert len(provider.sent) == 2
        assert await service.send_email("other@example.com", "s", "h", "t") is True

    async def test_resend_http_error_returns_false(self):
        import httpx

        provider = ResendProvider(api_key="re_test", from_address="noreply@kitaspaces.com", from_name="KITA Spaces")
        client = MagicMock()
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)
        client.post = AsyncMock(side_effect=httpx.ConnectError("down"))
        with patch("httpx.AsyncClient", return_value=client):
            assert await provider.send("maria@example.com", "s", "h", "t") is False


class TestProviderSelection:
    @pytest.mark.parametrize(
        ("name", "provider_class"),
        [("resend", ResendProvider), ("smtp", SMTPProvider), ("ses", SESProvider)],
    )
    def test_configured_provider(self, monkeypatch, name, provider_class):
        from kita.config import get_settings

        monkeypatch.setenv("KITA_EMAIL_PROVIDER", name)
        get_settings.cache_clear()
        assert isinstance(_create_provider(), provider_class)

    def test_unknown_provider(self, monkeypatch):
        from kita.config import get_settings

        monkeypatch.setenv("KITA_EMAIL_PROVIDER", "pigeon")
        get_settings.cache_clear()
        with pytest.raises(ValueError, match="Unsupported email provider"):
            _create_provider()
