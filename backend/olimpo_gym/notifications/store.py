# backend/olimpo_gym/notifications/store.py

"""
通知送信の監査ログ（Notification Record Store）。

- create(): PENDING で 1 件作成（created_at = updated_at = now）
- update_status(): SENT / FAILED へ一度だけ遷移させる
- 削除 API は持たない（追記専用）
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from olimpo_gym.errors import ConflictError, NotFoundError, ValidationError
from olimpo_gym.utils.time import utc_now

from .repository import NotificationRepository
from .schemas import (
    Notification,
    NotificationFilters,
    NotificationPage,
    NotificationStatus,
    NotificationType,
    SendOptions,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class NotificationRecordStore:
    def __init__(self, repository: NotificationRepository) -> None:
        self._repository = repository

    def _now(self) -> datetime:
        """テストしやすさのために現在時刻取得をメソッド化。"""
        return utc_now()

    def create(
        self,
        *,
        type_: NotificationType,
        recipient: str,
        message: str,
        subject: Optional[str] = None,
        options: Optional[SendOptions] = None,
    ) -> Notification:
        options = options or SendOptions()
        now = self._now()
        return self._repository.insert(
            {
                "type": type_,
                "recipient": recipient,
                "subject": subject,
                "message": message,
                "status": NotificationStatus.PENDING,
                "created_at": now,
                "updated_at": now,
                "user_id": options.user_id,
                "membership_id": options.membership_id,
                "template_id": options.template_id,
            }
        )

    def get(self, notification_id: str) -> Notification:
        notification = self._repository.get(notification_id)
        if notification is None:
            raise NotFoundError(f"Notification not found: {notification_id}")
        return notification

    def update_status(
        self,
        notification_id: str,
        status: NotificationStatus,
        error_message: Optional[str] = None,
    ) -> Notification:
        """
        ステータスを更新する。

        - SENT の場合は sent_at も now にする
        - すでに同じ終端ステータスなら何もしない
        - 別の終端ステータスへの変更は ConflictError
        """
        current = self.get(notification_id)

        if current.status.is_terminal:
            if current.status == status:
                logger.debug("Notification %s already %s.", notification_id, status.value)
                return current
            raise ConflictError(
                f"Notification {notification_id} is already {current.status.value}; "
                f"cannot change to {status.value}."
            )

        now = self._now()
        changes = {"status": status, "updated_at": now}
        if status == NotificationStatus.SENT:
            changes["sent_at"] = now
        if error_message:
            changes["error_message"] = error_message

        updated = self._repository.update(notification_id, changes)
        if updated is None:
            raise NotFoundError(f"Notification not found: {notification_id}")
        return updated

    def list(
        self,
        filters: Optional[NotificationFilters] = None,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> NotificationPage:
        """created_at の降順でページングして返す。"""
        if page < 1:
            raise ValidationError("page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        items, total = self._repository.list(
            filters or NotificationFilters(),
            offset=(page - 1) * limit,
            limit=limit,
        )
        return NotificationPage(items=items, total_count=total)
