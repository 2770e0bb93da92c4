# backend/olimpo_gym/notifications/router.py

"""
通知用の FastAPI ルーター定義。すべて管理者のみ。

- POST /notifications/email | whatsapp | membership-expiration | membership-renewal | bulk-email
- GET  /notifications, /notifications/user/{user_id}, /notifications/{id}
- /notifications/templates 以下のテンプレート管理
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from olimpo_gym.api.errors import internal_error, to_http_exception
from olimpo_gym.auth.dependencies import require_admin
from olimpo_gym.errors import GymError, NotFoundError

from .factory import get_notification_service
from .schemas import (
    BulkEmailRequest,
    BulkSendResult,
    DeleteResponse,
    MembershipExpirationRequest,
    MembershipRenewalRequest,
    NotificationFilters,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatus,
    NotificationType,
    SendEmailRequest,
    SendOptions,
    SendResponse,
    SendWhatsAppRequest,
    TemplateCreateRequest,
    TemplateListResponse,
    TemplateMutationResponse,
    TemplateResponse,
    TemplateUpdateRequest,
)
from .service import NotificationService

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_admin)],
)


def _options(body: SendOptions) -> SendOptions:
    return SendOptions(
        user_id=body.user_id,
        membership_id=body.membership_id,
        template_id=body.template_id,
    )


# ---- 送信 -------------------------------------------------------------


@router.post("/email", response_model=SendResponse, summary="メールを 1 件送信")
def send_email(
    body: SendEmailRequest,
    service: NotificationService = Depends(get_notification_service),
) -> SendResponse:
    try:
        result = service.send_email(body.email, body.subject, body.message, _options(body))
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Internal server error while sending email.") from exc
    return SendResponse(success=result)


@router.post("/whatsapp", response_model=SendResponse, summary="WhatsApp を 1 件送信")
def send_whatsapp(
    body: SendWhatsAppRequest,
    service: NotificationService = Depends(get_notification_service),
) -> SendResponse:
    """
    プロバイダ未設定・送信失敗時は success=False（ディープリンクは通知記録の error_message に残る）。
    """
    try:
        result = service.send_whatsapp(body.phone, body.message, _options(body))
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Internal server error while sending WhatsApp message.") from exc
    return SendResponse(success=result)


@router.post(
    "/membership-expiration",
    response_model=SendResponse,
    summary="メンバーシップ期限切れ予告メールを送信",
)
def send_membership_expiration(
    body: MembershipExpirationRequest,
    service: NotificationService = Depends(get_notification_service),
) -> SendResponse:
    try:
        result = service.send_membership_expiration_notification(
            body.email,
            body.name,
            body.expiration_date,
            body.membership_type,
            _options(body),
        )
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Internal server error while sending expiration notice.") from exc
    return SendResponse(success=result)


@router.post(
    "/membership-renewal",
    response_model=SendResponse,
    summary="メンバーシップ更新完了メールを送信",
)
def send_membership_renewal(
    body: MembershipRenewalRequest,
    service: NotificationService = Depends(get_notification_service),
) -> SendResponse:
    try:
        result = service.send_membership_renewal_notification(
            body.email,
            body.name,
            body.new_expiration_date,
            body.membership_type,
            _options(body),
        )
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Internal server error while sending renewal notice.") from exc
    return SendResponse(success=result)


@router.post("/bulk-email", response_model=BulkSendResult, summary="メールを一斉送信")
def send_bulk_email(
    body: BulkEmailRequest,
    service: NotificationService = Depends(get_notification_service),
) -> BulkSendResult:
    try:
        return service.send_bulk_email(body.emails, body.subject, body.message, body.template_id)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Internal server error while sending bulk email.") from exc


# ---- 記録の参照 -------------------------------------------------------


@router.get("", response_model=NotificationListResponse, summary="通知記録の一覧")
def list_notifications(
    type: Optional[NotificationType] = Query(None, description="通知種別"),  # noqa: A002
    status_: Optional[NotificationStatus] = Query(None, alias="status", description="送信ステータス"),
    date_from: Optional[datetime] = Query(None, description="created_at の下限"),
    date_to: Optional[datetime] = Query(None, description="created_at の上限"),
    user_id: Optional[str] = Query(None),
    membership_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    filters = NotificationFilters(
        type=type,
        status=status_,
        date_from=date_from,
        date_to=date_to,
        user_id=user_id,
        membership_id=membership_id,
    )
    try:
        result = service.list_notifications(filters, page=page, limit=limit)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to list notifications.") from exc

    return NotificationListResponse(
        notifications=result.items,
        total_count=result.total_count,
        page=page,
        limit=limit,
    )


@router.get(
    "/user/{user_id}",
    response_model=NotificationListResponse,
    summary="特定ユーザーの通知記録",
)
def list_user_notifications(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    try:
        result = service.list_user_notifications(user_id, page=page, limit=limit)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to list user notifications.") from exc

    return NotificationListResponse(
        notifications=result.items,
        total_count=result.total_count,
        page=page,
        limit=limit,
    )


# ---- テンプレート -----------------------------------------------------


@router.post("/templates", response_model=TemplateMutationResponse, summary="テンプレート作成")
def create_template(
    body: TemplateCreateRequest,
    service: NotificationService = Depends(get_notification_service),
) -> TemplateMutationResponse:
    try:
        template = service.create_template(body)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to create template.") from exc
    return TemplateMutationResponse(success=True, template=template)


@router.get("/templates", response_model=TemplateListResponse, summary="テンプレート一覧")
def list_templates(
    type: Optional[NotificationType] = Query(None),  # noqa: A002
    service: NotificationService = Depends(get_notification_service),
) -> TemplateListResponse:
    try:
        templates = service.list_templates(type)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to list templates.") from exc
    return TemplateListResponse(templates=templates)


@router.get(
    "/templates/default/{type_}",
    response_model=TemplateResponse,
    summary="種別ごとのデフォルトテンプレート",
)
def get_default_template(
    type_: NotificationType,
    service: NotificationService = Depends(get_notification_service),
) -> TemplateResponse:
    try:
        template = service.get_default_template(type_)
        if template is None:
            raise NotFoundError(f"No default template for {type_.value}")
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to get default template.") from exc
    return TemplateResponse(template=template)


@router.get("/templates/{template_id}", response_model=TemplateResponse, summary="テンプレート取得")
def get_template(
    template_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> TemplateResponse:
    try:
        template = service.get_template(template_id)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to get template.") from exc
    return TemplateResponse(template=template)


@router.put("/templates/{template_id}", response_model=TemplateMutationResponse, summary="テンプレート更新")
def update_template(
    template_id: str,
    body: TemplateUpdateRequest,
    service: NotificationService = Depends(get_notification_service),
) -> TemplateMutationResponse:
    try:
        template = service.update_template(template_id, body)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to update template.") from exc
    return TemplateMutationResponse(success=True, template=template)


@router.delete("/templates/{template_id}", response_model=DeleteResponse, summary="テンプレート削除")
def delete_template(
    template_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> DeleteResponse:
    """
    デフォルトテンプレートは 409（先に別テンプレートをデフォルトにする）。
    """
    try:
        deleted = service.delete_template(template_id)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to delete template.") from exc
    return DeleteResponse(success=deleted)


# ---- 個別の通知記録（/templates より後に登録する） -------------------


@router.get("/{notification_id}", response_model=NotificationResponse, summary="通知記録の取得")
def get_notification(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationResponse:
    try:
        notification = service.get_notification(notification_id)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to get notification.") from exc
    return NotificationResponse(notification=notification)
