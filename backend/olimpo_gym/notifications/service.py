# backend/olimpo_gym/notifications/service.py

"""
通知送信のオーケストレーション層。

責務:
- 送信前に PENDING の記録を作成し、送信結果で SENT / FAILED に更新する
- 期限切れ / 更新通知の本文をテンプレート（明示指定 → 種別デフォルト → 固定文面）から決める
- 一斉送信の集計
- テンプレート管理（種別ごとのデフォルトは常に高々 1 件）

送信処理はこの層の外へ例外を投げない。プロバイダ側の失敗は FAILED の記録と
bool / 集計結果に変換する。記録の作成自体に失敗した場合のみ例外が伝播する。
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from olimpo_gym.errors import ConflictError, GymError, NotFoundError
from olimpo_gym.utils.time import utc_now

from .channels import NotificationSender
from .config import NotificationSettings, get_notification_settings
from .repository import TemplateRepository
from .schemas import (
    BulkSendResult,
    DeliveryResult,
    Notification,
    NotificationFilters,
    NotificationPage,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
    SendOptions,
    TemplateCreateRequest,
    TemplateUpdateRequest,
)
from .store import NotificationRecordStore
from .templates import find_placeholders, render, unresolved_placeholders

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d/%m/%Y"

DEFAULT_EXPIRATION_SUBJECT = "Tu membresía está por expirar - {{gymName}}"
DEFAULT_EXPIRATION_MESSAGE = """Hola {{name}},

Te informamos que tu membresía {{membershipType}} en {{gymName}} expirará el {{expirationDate}}.

Para renovar tu membresía, puedes acercarte a nuestras instalaciones o hacerlo directamente desde nuestra plataforma web.

¡Gracias por ser parte de {{gymName}}!

Saludos,
El equipo de {{gymName}}"""

DEFAULT_RENEWAL_SUBJECT = "Tu membresía ha sido renovada - {{gymName}}"
DEFAULT_RENEWAL_MESSAGE = """Hola {{name}},

Te informamos que tu membresía {{membershipType}} en {{gymName}} ha sido renovada exitosamente.

Tu nueva fecha de expiración es el {{newExpirationDate}}.

¡Gracias por seguir confiando en {{gymName}}!

Saludos,
El equipo de {{gymName}}"""


class NotificationService:
    """
    通知送信・記録・テンプレート管理をまとめるサービス。

    - email_sender / whatsapp_sender は NotificationSender を満たすものなら何でもよい
      （テストではダミーを渡す）
    """

    def __init__(
        self,
        *,
        store: NotificationRecordStore,
        templates: TemplateRepository,
        email_sender: NotificationSender,
        whatsapp_sender: NotificationSender,
        settings: NotificationSettings | None = None,
    ) -> None:
        self._store = store
        self._templates = templates
        self._email_sender = email_sender
        self._whatsapp_sender = whatsapp_sender
        self._settings = settings or get_notification_settings()

    # ---- 内部ヘルパー -------------------------------------------------

    def _now(self) -> datetime:
        return utc_now()

    def _dispatch(
        self,
        *,
        type_: NotificationType,
        sender: NotificationSender,
        recipient: str,
        message: str,
        subject: Optional[str],
        options: Optional[SendOptions],
    ) -> bool:
        """
        記録作成 → 送信 → ステータス更新 を 1 件分行う。

        記録作成の失敗はそのまま伝播する（送信試行を記録できないため）。
        """
        record = self._store.create(
            type_=type_,
            recipient=recipient,
            message=message,
            subject=subject,
            options=options,
        )

        try:
            result = sender.send(recipient, message, subject)
        except GymError as exc:
            logger.warning(
                "Notification %s (%s) to %s failed: %s",
                record.id,
                type_.value,
                recipient,
                exc.message,
            )
            result = DeliveryResult(status=NotificationStatus.FAILED, error_message=exc.message)
        except Exception as exc:  # noqa: BLE001 - 送信失敗は記録に残して処理を続ける
            logger.exception("Unexpected error while sending notification %s.", record.id)
            result = DeliveryResult(status=NotificationStatus.FAILED, error_message=str(exc))

        try:
            self._store.update_status(record.id, result.status, result.error_message)
        except GymError as exc:
            logger.error("Failed to update notification %s status: %s", record.id, exc.message)

        if result.is_sent:
            logger.info("Notification %s (%s) sent to %s.", record.id, type_.value, recipient)
        return result.is_sent

    def _find_template(
        self,
        type_: NotificationType,
        template_id: Optional[str],
    ) -> Optional[NotificationTemplate]:
        """
        明示指定のテンプレート → 種別のデフォルトテンプレートの順で探す。

        取得に失敗してもエラーにはせず、None（固定文面を使う）として扱う。
        """
        if template_id:
            try:
                template = self._templates.get(template_id)
            except GymError as exc:
                logger.warning("Template %s lookup failed: %s. Using default message.", template_id, exc.message)
                return None
            if template is None:
                logger.warning("Template %s not found. Using default message.", template_id)
            return template

        try:
            return self._templates.get_default(type_)
        except GymError as exc:
            logger.warning("Default template lookup for %s failed: %s", type_.value, exc.message)
            return None

    def _resolve_content(
        self,
        type_: NotificationType,
        template_id: Optional[str],
        variables: Dict[str, str],
        default_subject: str,
        default_message: str,
    ) -> Tuple[str, str, Optional[str]]:
        """
        (subject, message, 使用したテンプレート ID) を返す。
        """
        template = self._find_template(type_, template_id)
        if template is None:
            subject_source, content_source, used_id = default_subject, default_message, None
        else:
            subject_source = template.subject or default_subject
            content_source = template.content
            used_id = template.id

        missing = unresolved_placeholders(content_source, variables)
        if missing:
            logger.warning("Unresolved template variables for %s: %s", type_.value, ", ".join(missing))

        return render(subject_source, variables), render(content_source, variables), used_id

    # ---- 送信 ---------------------------------------------------------

    def send_email(
        self,
        recipient: str,
        subject: str,
        message: str,
        options: Optional[SendOptions] = None,
        *,
        notification_type: NotificationType = NotificationType.EMAIL,
    ) -> bool:
        """メールを 1 件送信し、成功したかどうかを返す。"""
        return self._dispatch(
            type_=notification_type,
            sender=self._email_sender,
            recipient=recipient,
            message=message,
            subject=subject,
            options=options,
        )

    def send_whatsapp(
        self,
        recipient: str,
        message: str,
        options: Optional[SendOptions] = None,
    ) -> bool:
        """
        WhatsApp を 1 件送信する。

        プロバイダ未設定・エラー時はディープリンクを error_message に記録して False。
        """
        return self._dispatch(
            type_=NotificationType.WHATSAPP,
            sender=self._whatsapp_sender,
            recipient=recipient,
            message=message,
            subject=None,
            options=options,
        )

    def send_membership_expiration_notification(
        self,
        email: str,
        name: str,
        expiration_date: datetime,
        membership_type: str,
        options: Optional[SendOptions] = None,
    ) -> bool:
        options = options or SendOptions()
        variables = {
            "name": name,
            "membershipType": membership_type,
            "expirationDate": expiration_date.strftime(DATE_FORMAT),
            "gymName": self._settings.gym_name,
        }
        subject, message, used_id = self._resolve_content(
            NotificationType.MEMBERSHIP_EXPIRATION,
            options.template_id,
            variables,
            DEFAULT_EXPIRATION_SUBJECT,
            DEFAULT_EXPIRATION_MESSAGE,
        )
        return self.send_email(
            email,
            subject,
            message,
            options.model_copy(update={"template_id": used_id}),
            notification_type=NotificationType.MEMBERSHIP_EXPIRATION,
        )

    def send_membership_renewal_notification(
        self,
        email: str,
        name: str,
        new_expiration_date: datetime,
        membership_type: str,
        options: Optional[SendOptions] = None,
    ) -> bool:
        options = options or SendOptions()
        variables = {
            "name": name,
            "membershipType": membership_type,
            "newExpirationDate": new_expiration_date.strftime(DATE_FORMAT),
            "gymName": self._settings.gym_name,
        }
        subject, message, used_id = self._resolve_content(
            NotificationType.MEMBERSHIP_RENEWAL,
            options.template_id,
            variables,
            DEFAULT_RENEWAL_SUBJECT,
            DEFAULT_RENEWAL_MESSAGE,
        )
        return self.send_email(
            email,
            subject,
            message,
            options.model_copy(update={"template_id": used_id}),
            notification_type=NotificationType.MEMBERSHIP_RENEWAL,
        )

    def send_bulk_email(
        self,
        emails: Iterable[str],
        subject: str,
        message: str,
        template_id: Optional[str] = None,
    ) -> BulkSendResult:
        """
        宛先ごとに順番に送信し、成功 / 失敗件数を集計する。

        template_id が指定されていれば、そのテンプレートの件名・本文を {{email}} で
        宛先ごとにレンダリングして使う（取得できなければ引数の件名・本文のまま）。
        """
        template: Optional[NotificationTemplate] = None
        if template_id:
            template = self._find_template(NotificationType.BULK_EMAIL, template_id)

        recipients: List[str] = list(emails)
        success = 0
        failed = 0

        for email in recipients:
            if template is not None:
                variables = {"email": email, "gymName": self._settings.gym_name}
                mail_subject = render(template.subject or subject, variables)
                mail_message = render(template.content, variables)
            else:
                mail_subject, mail_message = subject, message

            try:
                sent = self.send_email(
                    email,
                    mail_subject,
                    mail_message,
                    SendOptions(template_id=template.id if template else None),
                    notification_type=NotificationType.BULK_EMAIL,
                )
            except GymError as exc:
                # 記録を作れなかった宛先も失敗として数えて次へ進む
                logger.error("Bulk email to %s could not be recorded: %s", email, exc.message)
                sent = False

            if sent:
                success += 1
            else:
                failed += 1

        total = len(recipients)
        success_rate = success / total if total else 0.0
        result = BulkSendResult(
            success=success,
            failed=failed,
            total=total,
            success_rate=success_rate,
            ok=total > 0 and success_rate >= self._settings.bulk_success_threshold,
        )
        logger.info("Bulk email finished: success=%s failed=%s total=%s", success, failed, total)
        return result

    # ---- 記録の参照 ---------------------------------------------------

    def get_notification(self, notification_id: str) -> Notification:
        return self._store.get(notification_id)

    def list_notifications(
        self,
        filters: Optional[NotificationFilters] = None,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> NotificationPage:
        return self._store.list(filters, page=page, limit=limit)

    def list_user_notifications(
        self,
        user_id: str,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> NotificationPage:
        return self._store.list(NotificationFilters(user_id=user_id), page=page, limit=limit)

    # ---- テンプレート管理 ---------------------------------------------

    def get_template(self, template_id: str) -> NotificationTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Template not found: {template_id}")
        return template

    def list_templates(self, type_: Optional[NotificationType] = None) -> List[NotificationTemplate]:
        return self._templates.list(type_=type_)

    def get_default_template(self, type_: NotificationType) -> Optional[NotificationTemplate]:
        return self._templates.get_default(type_)

    def create_template(self, request: TemplateCreateRequest) -> NotificationTemplate:
        """
        テンプレートを作成する。

        is_default=True の場合は、同じ種別の既存デフォルトを先に解除する。
        variables 未指定時は content 中のプレースホルダから作る。
        """
        if request.is_default:
            cleared = self._templates.clear_default(request.type)
            if cleared:
                logger.info("Cleared %s previous default template(s) for %s.", cleared, request.type.value)

        now = self._now()
        variables = (
            request.variables if request.variables is not None else find_placeholders(request.content)
        )
        template = self._templates.insert(
            {
                "name": request.name,
                "description": request.description,
                "type": request.type,
                "subject": request.subject,
                "content": request.content,
                "variables": variables,
                "is_default": request.is_default,
                "created_by": request.created_by,
                "created_at": now,
                "updated_at": now,
            }
        )
        logger.info("Template %s (%s) created.", template.id, template.type.value)
        return template

    def update_template(
        self,
        template_id: str,
        request: TemplateUpdateRequest,
    ) -> NotificationTemplate:
        current = self.get_template(template_id)

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "content" in changes and "variables" not in changes:
            changes["variables"] = find_placeholders(changes["content"])

        if changes.get("is_default"):
            self._templates.clear_default(current.type, exclude_id=template_id)

        changes["updated_at"] = self._now()
        updated = self._templates.update(template_id, changes)
        if updated is None:
            raise NotFoundError(f"Template not found: {template_id}")
        return updated

    def delete_template(self, template_id: str) -> bool:
        """
        テンプレートを削除する。

        デフォルトテンプレートは削除できない（先にデフォルトを解除する必要がある）。
        """
        template = self.get_template(template_id)
        if template.is_default:
            raise ConflictError(
                "Cannot delete the default template. Set another template as default first."
            )
        deleted = self._templates.delete(template_id)
        if not deleted:
            raise NotFoundError(f"Template not found: {template_id}")
        logger.info("Template %s deleted.", template_id)
        return True
