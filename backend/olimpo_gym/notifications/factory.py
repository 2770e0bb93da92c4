# backend/olimpo_gym/notifications/factory.py

"""
通知サービスの簡易ファクトリ。

- EMAIL_API_KEY があれば EmailSender、なければ LoggingEmailSender を使う
- WhatsAppSender は常に登録する（未設定時はディープリンクを記録して FAILED）
- 記録・テンプレートは Supabase のテーブルに保存する
"""

from __future__ import annotations

import logging
from typing import Optional

from olimpo_gym.db.state import get_supabase_client

from .channels import EmailSender, LoggingEmailSender, NotificationSender, WhatsAppSender
from .config import NotificationSettings, get_notification_settings
from .repository import SupabaseNotificationRepository, SupabaseTemplateRepository
from .service import NotificationService
from .store import NotificationRecordStore

logger = logging.getLogger(__name__)

_notification_service: Optional[NotificationService] = None


def build_email_sender(settings: NotificationSettings) -> NotificationSender:
    if settings.email_configured:
        return EmailSender(settings)
    logger.warning("EMAIL_API_KEY is not set. Emails will only be written to the log.")
    return LoggingEmailSender()


def get_notification_service() -> NotificationService:
    """
    アプリ全体で共有する NotificationService を返す。

    初回呼び出し時にのみ生成し、それ以降は同じインスタンスを返す。
    """
    global _notification_service
    if _notification_service is None:
        settings = get_notification_settings()
        client = get_supabase_client()
        _notification_service = NotificationService(
            store=NotificationRecordStore(SupabaseNotificationRepository(client)),
            templates=SupabaseTemplateRepository(client),
            email_sender=build_email_sender(settings),
            whatsapp_sender=WhatsAppSender(settings),
            settings=settings,
        )
    return _notification_service


def reset_notification_service() -> None:
    """テスト用にシングルトン状態をリセットする。"""
    global _notification_service
    _notification_service = None
