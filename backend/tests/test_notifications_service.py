# backend/tests/test_notifications_service.py

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import pytest

from olimpo_gym.errors import ConflictError, NotFoundError, ProviderError, RepositoryError
from olimpo_gym.notifications.config import NotificationSettings
from olimpo_gym.notifications.repository import (
    InMemoryNotificationRepository,
    InMemoryTemplateRepository,
)
from olimpo_gym.notifications.schemas import (
    DeliveryResult,
    NotificationFilters,
    NotificationStatus,
    NotificationType,
    SendOptions,
    TemplateCreateRequest,
    TemplateUpdateRequest,
)
from olimpo_gym.notifications.service import NotificationService
from olimpo_gym.notifications.store import NotificationRecordStore


class DummySender:
    """送信内容を記録するだけの Sender。failing に含まれる宛先は ProviderError。"""

    def __init__(self, failing: Tuple[str, ...] = ()) -> None:
        self.failing = failing
        self.sent: List[Tuple[str, str, Optional[str]]] = []

    def send(self, recipient: str, content: str, subject: Optional[str] = None) -> DeliveryResult:
        if recipient in self.failing:
            raise ProviderError(f"provider rejected {recipient}")
        self.sent.append((recipient, content, subject))
        return DeliveryResult(status=NotificationStatus.SENT)


class BrokenTemplateRepository(InMemoryTemplateRepository):
    def get(self, template_id: str):
        raise RepositoryError("templates table unavailable")

    def get_default(self, type_: NotificationType):
        raise RepositoryError("templates table unavailable")


def _build_service(
    *,
    email_sender: Optional[DummySender] = None,
    whatsapp_sender=None,
    templates=None,
    settings: Optional[NotificationSettings] = None,
):
    repository = InMemoryNotificationRepository()
    email_sender = email_sender or DummySender()
    service = NotificationService(
        store=NotificationRecordStore(repository),
        templates=templates if templates is not None else InMemoryTemplateRepository(),
        email_sender=email_sender,
        whatsapp_sender=whatsapp_sender or DummySender(),
        settings=settings or NotificationSettings(),
    )
    return service, email_sender


def _records(service: NotificationService, **filters):
    return service.list_notifications(NotificationFilters(**filters), limit=100).items


# ---- 単発送信 -----------------------------------------------------------


def test_send_email_records_sent_notification() -> None:
    service, sender = _build_service()

    result = service.send_email(
        "ana@example.com",
        "Asunto",
        "Hola",
        SendOptions(user_id="user-1", membership_id="m-1"),
    )

    assert result is True
    assert sender.sent == [("ana@example.com", "Hola", "Asunto")]

    [record] = _records(service)
    assert record.type == NotificationType.EMAIL
    assert record.status == NotificationStatus.SENT
    assert record.sent_at is not None
    assert record.user_id == "user-1"
    assert record.membership_id == "m-1"


def test_send_email_provider_failure_is_recorded_not_raised(caplog) -> None:
    service, _ = _build_service(email_sender=DummySender(failing=("bad@example.com",)))

    with caplog.at_level(logging.WARNING):
        result = service.send_email("bad@example.com", "Asunto", "Hola")

    assert result is False
    [record] = _records(service)
    assert record.status == NotificationStatus.FAILED
    assert "provider rejected" in record.error_message
    assert record.sent_at is None
    assert any("bad@example.com" in r.getMessage() for r in caplog.records)


def test_send_whatsapp_without_provider_records_manual_link() -> None:
    from olimpo_gym.notifications.channels import WhatsAppSender

    settings = NotificationSettings()
    service, _ = _build_service(whatsapp_sender=WhatsAppSender(settings), settings=settings)

    result = service.send_whatsapp("+54 9 11 1234-5678", "Hola")

    assert result is False
    [record] = _records(service)
    assert record.type == NotificationType.WHATSAPP
    assert record.status == NotificationStatus.FAILED
    assert "https://api.whatsapp.com/send/?phone=5491112345678" in record.error_message


def test_send_whatsapp_with_malformed_phone_returns_false() -> None:
    from olimpo_gym.notifications.channels import WhatsAppSender

    settings = NotificationSettings()
    service, _ = _build_service(whatsapp_sender=WhatsAppSender(settings), settings=settings)

    assert service.send_whatsapp("not-a-phone", "Hola") is False

    [record] = _records(service)
    assert record.status == NotificationStatus.FAILED
    assert "Invalid phone number" in record.error_message


# ---- 期限切れ / 更新通知 -------------------------------------------------


def test_expiration_notification_uses_default_message_when_no_template() -> None:
    service, sender = _build_service(settings=NotificationSettings(gym_name="Olimpo Test"))

    result = service.send_membership_expiration_notification(
        "ana@example.com",
        "Ana",
        datetime(2025, 1, 31, tzinfo=timezone.utc),
        "MONTHLY",
        SendOptions(user_id="user-1", membership_id="m-1"),
    )

    assert result is True
    [(recipient, message, subject)] = sender.sent
    assert recipient == "ana@example.com"
    assert subject == "Tu membresía está por expirar - Olimpo Test"
    assert "Hola Ana" in message
    assert "MONTHLY" in message
    assert "31/01/2025" in message
    assert "{{" not in message

    [record] = _records(service)
    assert record.type == NotificationType.MEMBERSHIP_EXPIRATION
    assert record.template_id is None
    assert record.membership_id == "m-1"


def test_expiration_notification_prefers_default_template() -> None:
    service, sender = _build_service()
    template = service.create_template(
        TemplateCreateRequest(
            name="aviso",
            type=NotificationType.MEMBERSHIP_EXPIRATION,
            subject="Aviso {{name}}",
            content="{{name}}: vence {{expirationDate}}",
            is_default=True,
        )
    )

    service.send_membership_expiration_notification(
        "ana@example.com",
        "Ana",
        datetime(2025, 2, 1, tzinfo=timezone.utc),
        "KICKBOXING",
    )

    assert sender.sent == [("ana@example.com", "Ana: vence 01/02/2025", "Aviso Ana")]
    [record] = _records(service)
    assert record.template_id == template.id


def test_explicit_template_id_wins_over_default() -> None:
    service, sender = _build_service()
    service.create_template(
        TemplateCreateRequest(
            name="default",
            type=NotificationType.MEMBERSHIP_RENEWAL,
            content="default {{name}}",
            is_default=True,
        )
    )
    explicit = service.create_template(
        TemplateCreateRequest(
            name="explicit",
            type=NotificationType.MEMBERSHIP_RENEWAL,
            content="explicit {{name}} {{newExpirationDate}}",
        )
    )

    service.send_membership_renewal_notification(
        "ana@example.com",
        "Ana",
        datetime(2025, 3, 2, tzinfo=timezone.utc),
        "MONTHLY",
        SendOptions(template_id=explicit.id),
    )

    [(_, message, subject)] = sender.sent
    assert message == "explicit Ana 02/03/2025"
    assert subject == "Tu membresía ha sido renovada - Olimpo Gym"
    [record] = _records(service)
    assert record.type == NotificationType.MEMBERSHIP_RENEWAL
    assert record.template_id == explicit.id


def test_template_lookup_failure_falls_back_to_default_message() -> None:
    service, sender = _build_service(templates=BrokenTemplateRepository())

    result = service.send_membership_renewal_notification(
        "ana@example.com",
        "Ana",
        datetime(2025, 3, 2, tzinfo=timezone.utc),
        "MONTHLY",
        SendOptions(template_id="missing"),
    )

    assert result is True
    [(_, message, _)] = sender.sent
    assert "02/03/2025" in message
    assert _records(service)[0].template_id is None


# ---- 一斉送信 -----------------------------------------------------------


def test_bulk_email_counts_success_and_failure() -> None:
    service, _ = _build_service(email_sender=DummySender(failing=("bad@example.com",)))

    result = service.send_bulk_email(["ok@example.com", "bad@example.com"], "Asunto", "Hola")

    assert result.success == 1
    assert result.failed == 1
    assert result.total == 2
    assert result.success_rate == pytest.approx(0.5)
    assert result.ok is False

    records = _records(service, type=NotificationType.BULK_EMAIL)
    assert sorted(r.status.value for r in records) == ["FAILED", "SENT"]


def test_bulk_email_ok_when_success_rate_reaches_threshold() -> None:
    emails = [f"user{i}@example.com" for i in range(10)]
    service, _ = _build_service(email_sender=DummySender(failing=("user9@example.com",)))

    result = service.send_bulk_email(emails, "Asunto", "Hola")

    assert result.success == 9
    assert result.success_rate == pytest.approx(0.9)
    assert result.ok is True


def test_bulk_email_renders_template_per_recipient() -> None:
    service, sender = _build_service()
    template = service.create_template(
        TemplateCreateRequest(
            name="promo",
            type=NotificationType.BULK_EMAIL,
            subject="Novedades {{gymName}}",
            content="Hola {{email}}",
        )
    )

    service.send_bulk_email(["a@example.com", "b@example.com"], "ignored", "ignored", template.id)

    assert sender.sent == [
        ("a@example.com", "Hola a@example.com", "Novedades Olimpo Gym"),
        ("b@example.com", "Hola b@example.com", "Novedades Olimpo Gym"),
    ]
    assert all(r.template_id == template.id for r in _records(service))


def test_bulk_email_with_unknown_template_uses_given_content() -> None:
    service, sender = _build_service()

    result = service.send_bulk_email(["a@example.com"], "Asunto", "Hola", "missing")

    assert result.success == 1
    assert sender.sent == [("a@example.com", "Hola", "Asunto")]


# ---- 参照 ---------------------------------------------------------------


def test_get_notification_and_user_listing() -> None:
    service, _ = _build_service()
    service.send_email("a@example.com", "s", "m", SendOptions(user_id="user-1"))
    service.send_email("b@example.com", "s", "m", SendOptions(user_id="user-2"))

    page = service.list_user_notifications("user-1")

    assert page.total_count == 1
    assert service.get_notification(page.items[0].id).recipient == "a@example.com"
    with pytest.raises(NotFoundError):
        service.get_notification("missing")


# ---- テンプレート管理 -----------------------------------------------------


def test_create_template_derives_variables_from_content() -> None:
    service, _ = _build_service()

    template = service.create_template(
        TemplateCreateRequest(
            name="t",
            type=NotificationType.EMAIL,
            content="{{name}} {{gymName}} {{name}}",
        )
    )

    assert template.variables == ["name", "gymName"]
    assert service.get_template(template.id) == template


def test_only_one_default_template_per_type() -> None:
    service, _ = _build_service()
    first = service.create_template(
        TemplateCreateRequest(name="a", type=NotificationType.EMAIL, content="a", is_default=True)
    )
    second = service.create_template(
        TemplateCreateRequest(name="b", type=NotificationType.EMAIL, content="b", is_default=True)
    )
    other_type = service.create_template(
        TemplateCreateRequest(name="c", type=NotificationType.BULK_EMAIL, content="c", is_default=True)
    )

    assert service.get_template(first.id).is_default is False
    assert service.get_default_template(NotificationType.EMAIL).id == second.id
    assert service.get_default_template(NotificationType.BULK_EMAIL).id == other_type.id

    service.update_template(first.id, TemplateUpdateRequest(is_default=True))

    assert service.get_default_template(NotificationType.EMAIL).id == first.id
    defaults = [t for t in service.list_templates(NotificationType.EMAIL) if t.is_default]
    assert [t.id for t in defaults] == [first.id]


def test_update_template_recomputes_variables_when_content_changes() -> None:
    service, _ = _build_service()
    template = service.create_template(
        TemplateCreateRequest(name="t", type=NotificationType.EMAIL, content="{{a}}")
    )

    updated = service.update_template(template.id, TemplateUpdateRequest(content="{{b}} {{c}}"))

    assert updated.content == "{{b}} {{c}}"
    assert updated.variables == ["b", "c"]
    assert updated.name == "t"


def test_update_unknown_template_raises_not_found() -> None:
    service, _ = _build_service()

    with pytest.raises(NotFoundError):
        service.update_template("missing", TemplateUpdateRequest(name="x"))


def test_delete_default_template_conflicts_and_keeps_it() -> None:
    service, _ = _build_service()
    template = service.create_template(
        TemplateCreateRequest(name="a", type=NotificationType.EMAIL, content="a", is_default=True)
    )

    with pytest.raises(ConflictError):
        service.delete_template(template.id)

    assert service.get_template(template.id).is_default is True


def test_delete_non_default_template() -> None:
    service, _ = _build_service()
    template = service.create_template(
        TemplateCreateRequest(name="a", type=NotificationType.EMAIL, content="a")
    )

    assert service.delete_template(template.id) is True
    with pytest.raises(NotFoundError):
        service.get_template(template.id)
