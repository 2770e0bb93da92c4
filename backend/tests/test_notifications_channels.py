# backend/tests/test_notifications_channels.py

import json
import logging

import httpx
import pytest

from olimpo_gym.errors import InvalidFormatError, ProviderError
from olimpo_gym.notifications.channels import (
    EmailSender,
    LoggingEmailSender,
    WhatsAppSender,
    build_whatsapp_link,
    normalize_phone,
)
from olimpo_gym.notifications.config import NotificationSettings
from olimpo_gym.notifications.schemas import NotificationStatus


def _whatsapp_settings(**overrides) -> NotificationSettings:
    values = {
        "whatsapp_api_token": "dummy-token",
        "whatsapp_phone_number_id": "1234567890",
    }
    values.update(overrides)
    return NotificationSettings(**values)


# ---- 電話番号 -----------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+54 9 11 1234-5678", "5491112345678"),
        ("0054 9 11 1234 5678", "5491112345678"),
        ("(011) 1234-5678", "541112345678"),
        ("54 11 1234 5678", "541112345678"),
    ],
)
def test_normalize_phone_accepts_common_formats(raw: str, expected: str) -> None:
    assert normalize_phone(raw, "54") == expected


@pytest.mark.parametrize("raw", ["", "abc-123", "+54 11 1234 56x8", "123", "+1234567890123456"])
def test_normalize_phone_rejects_malformed_numbers(raw: str) -> None:
    with pytest.raises(InvalidFormatError):
        normalize_phone(raw, "54")


def test_build_whatsapp_link_url_encodes_message() -> None:
    link = build_whatsapp_link("5491112345678", "Hola Ana & equipo!")

    assert link == "https://api.whatsapp.com/send/?phone=5491112345678&text=Hola%20Ana%20%26%20equipo%21"


# ---- メール -------------------------------------------------------------


def test_logging_email_sender_logs_and_reports_sent(caplog) -> None:
    logger = logging.getLogger("test_logger_email")
    sender = LoggingEmailSender(logger_=logger)

    with caplog.at_level(logging.INFO, logger="test_logger_email"):
        result = sender.send("ana@example.com", "body-text", "subject-text")

    assert result.status == NotificationStatus.SENT
    assert any("ana@example.com" in r.getMessage() and "body-text" in r.getMessage() for r in caplog.records)


def test_email_sender_requires_api_key() -> None:
    with pytest.raises(RuntimeError):
        EmailSender(NotificationSettings())


def test_email_sender_posts_payload_with_bearer_token() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("Authorization")
        captured["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email-123"})

    settings = NotificationSettings(email_api_key="re_dummy", email_from="Olimpo <no-reply@olimpo.test>")
    sender = EmailSender(settings, transport=httpx.MockTransport(handler))

    result = sender.send("ana@example.com", "Hola", "Asunto")

    assert result.status == NotificationStatus.SENT
    assert result.provider_message_id == "email-123"
    assert captured["url"] == "https://api.resend.com/emails"
    assert captured["auth"] == "Bearer re_dummy"
    assert captured["payload"] == {
        "from": "Olimpo <no-reply@olimpo.test>",
        "to": ["ana@example.com"],
        "subject": "Asunto",
        "text": "Hola",
    }


def test_email_sender_raises_provider_error_on_non_2xx() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "invalid to"})

    sender = EmailSender(
        NotificationSettings(email_api_key="re_dummy"),
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(ProviderError) as exc_info:
        sender.send("not-an-email", "Hola", "Asunto")

    assert exc_info.value.status_code == 422
    assert exc_info.value.body == {"message": "invalid to"}


def test_email_sender_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    sender = EmailSender(
        NotificationSettings(email_api_key="re_dummy"),
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(ProviderError):
        sender.send("ana@example.com", "Hola", "Asunto")


# ---- WhatsApp -----------------------------------------------------------


def test_whatsapp_sender_without_provider_returns_failed_with_link() -> None:
    sender = WhatsAppSender(NotificationSettings())

    result = sender.send("+54 9 11 1234-5678", "Hola")

    assert result.status == NotificationStatus.FAILED
    assert result.fallback_url == "https://api.whatsapp.com/send/?phone=5491112345678&text=Hola"
    assert result.fallback_url in result.error_message


def test_whatsapp_sender_sends_text_message_via_provider() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.abc"}]})

    sender = WhatsAppSender(_whatsapp_settings(), transport=httpx.MockTransport(handler))

    result = sender.send("+54 9 11 1234-5678", "Hola")

    assert result.status == NotificationStatus.SENT
    assert result.provider_message_id == "wamid.abc"
    assert captured["url"] == "https://graph.facebook.com/v17.0/1234567890/messages"
    assert captured["payload"]["to"] == "5491112345678"
    assert captured["payload"]["type"] == "text"
    assert captured["payload"]["text"]["body"] == "Hola"


def test_whatsapp_sender_uses_template_when_configured() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.tpl"}]})

    sender = WhatsAppSender(
        _whatsapp_settings(whatsapp_template_name="recordatorio"),
        transport=httpx.MockTransport(handler),
    )

    result = sender.send("+54 9 11 1234-5678", "Hola")

    assert result.is_sent
    assert captured["payload"]["type"] == "template"
    assert captured["payload"]["template"]["name"] == "recordatorio"
    assert captured["payload"]["template"]["language"] == {"code": "es_AR"}


def test_whatsapp_sender_falls_back_to_link_on_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream error")

    sender = WhatsAppSender(_whatsapp_settings(), transport=httpx.MockTransport(handler))

    result = sender.send("+54 9 11 1234-5678", "Hola")

    assert result.status == NotificationStatus.FAILED
    assert "status_code=500" in result.error_message
    assert "https://api.whatsapp.com/send/?phone=5491112345678" in result.error_message


def test_whatsapp_sender_rejects_malformed_phone() -> None:
    sender = WhatsAppSender(NotificationSettings())

    with pytest.raises(InvalidFormatError):
        sender.send("no-phone", "Hola")
