# backend/olimpo_gym/notifications/schemas.py

"""
通知まわりの共通スキーマ定義。

- Notification: 送信試行 1 件分の監査ログ（notifications テーブル）
- NotificationTemplate: {{variable}} 付きの再利用可能な本文（notification_templates テーブル）
- 送信 API のリクエスト / レスポンス

※ Notification は追記専用。削除 API は用意しない。
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """
    通知の種別。テンプレートの種別としても使う。
    """

    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"
    MEMBERSHIP_EXPIRATION = "MEMBERSHIP_EXPIRATION"
    MEMBERSHIP_RENEWAL = "MEMBERSHIP_RENEWAL"
    BULK_EMAIL = "BULK_EMAIL"


class NotificationStatus(str, Enum):
    """
    送信ステータス。

    PENDING で作成され、SENT / FAILED のどちらかへ一度だけ遷移する。
    """

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (NotificationStatus.SENT, NotificationStatus.FAILED)


class Notification(BaseModel):
    """
    送信試行 1 件分の記録。
    """

    id: str
    type: NotificationType
    recipient: str = Field(..., description="メールアドレスまたは電話番号")
    subject: Optional[str] = Field(None, description="メールの件名（WhatsApp では None）")
    message: str
    status: NotificationStatus = NotificationStatus.PENDING
    sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    user_id: Optional[str] = None
    membership_id: Optional[str] = None
    template_id: Optional[str] = None
    error_message: Optional[str] = None


class NotificationTemplate(BaseModel):
    """
    通知テンプレート。

    不変条件: 同じ type で is_default=True のテンプレートは高々 1 件。
    """

    id: str
    name: str
    description: Optional[str] = None
    type: NotificationType
    subject: Optional[str] = None
    content: str
    variables: List[str] = Field(default_factory=list)
    is_default: bool = False
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SendOptions(BaseModel):
    """
    送信時に記録へ紐づける任意項目。
    """

    user_id: Optional[str] = Field(None, alias="userId")
    membership_id: Optional[str] = Field(None, alias="membershipId")
    template_id: Optional[str] = Field(None, alias="templateId")

    model_config = {"populate_by_name": True}


class NotificationFilters(BaseModel):
    """GET /notifications の絞り込み条件。"""

    type: Optional[NotificationType] = None
    status: Optional[NotificationStatus] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    user_id: Optional[str] = None
    membership_id: Optional[str] = None


class NotificationPage(BaseModel):
    items: List[Notification] = Field(default_factory=list)
    total_count: int = Field(..., ge=0)


class DeliveryResult(BaseModel):
    """
    チャンネル送信 1 回分の結果。

    - status: SENT / FAILED
    - error_message: 失敗理由。WhatsApp のフォールバック時はディープリンク URL を含む
    """

    status: NotificationStatus
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None
    fallback_url: Optional[str] = None

    @property
    def is_sent(self) -> bool:
        return self.status == NotificationStatus.SENT


class BulkSendResult(BaseModel):
    """一斉送信の集計結果。success / failed が正となる契約。"""

    success: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    success_rate: float = Field(..., ge=0, le=1)
    ok: bool = Field(..., description="success_rate がしきい値（デフォルト 90%）以上かどうか")


# ---- API リクエスト / レスポンス ------------------------------------


class SendEmailRequest(SendOptions):
    email: str = Field(..., min_length=3)
    subject: str
    message: str


class SendWhatsAppRequest(SendOptions):
    phone: str = Field(..., min_length=1)
    message: str


class MembershipExpirationRequest(SendOptions):
    email: str = Field(..., min_length=3)
    name: str
    expiration_date: datetime = Field(..., alias="expirationDate")
    membership_type: str = Field(..., alias="membershipType")


class MembershipRenewalRequest(SendOptions):
    email: str = Field(..., min_length=3)
    name: str
    new_expiration_date: datetime = Field(..., alias="newExpirationDate")
    membership_type: str = Field(..., alias="membershipType")


class BulkEmailRequest(BaseModel):
    emails: List[str] = Field(..., min_length=1)
    subject: str
    message: str
    template_id: Optional[str] = Field(None, alias="templateId")

    model_config = {"populate_by_name": True}


class SendResponse(BaseModel):
    success: bool


class NotificationListResponse(BaseModel):
    notifications: List[Notification]
    total_count: int
    page: int
    limit: int


class NotificationResponse(BaseModel):
    notification: Notification


class TemplateCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: NotificationType
    content: str = Field(..., min_length=1)
    variables: Optional[List[str]] = None
    subject: Optional[str] = None
    is_default: bool = Field(False, alias="isDefault")
    created_by: Optional[str] = Field(None, alias="createdBy")

    model_config = {"populate_by_name": True}


class TemplateUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    content: Optional[str] = Field(None, min_length=1)
    variables: Optional[List[str]] = None
    subject: Optional[str] = None
    is_default: Optional[bool] = Field(None, alias="isDefault")

    model_config = {"populate_by_name": True}


class TemplateResponse(BaseModel):
    template: NotificationTemplate


class TemplateMutationResponse(BaseModel):
    success: bool
    template: NotificationTemplate


class TemplateListResponse(BaseModel):
    templates: List[NotificationTemplate]


class DeleteResponse(BaseModel):
    success: bool
