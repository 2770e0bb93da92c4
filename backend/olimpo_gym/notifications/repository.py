# backend/olimpo_gym/notifications/repository.py

"""
通知記録・テンプレートの永続化レイヤ。

- NotificationRepository / TemplateRepository: サービス層が依存するインターフェース
- Supabase*: notifications / notification_templates テーブル（本番の保存先）
- InMemory*: テスト・ローカル検証用
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from olimpo_gym.db.supabase import SupabaseRestClient

from .schemas import (
    Notification,
    NotificationFilters,
    NotificationTemplate,
    NotificationType,
)

NOTIFICATIONS_TABLE = "notifications"
TEMPLATES_TABLE = "notification_templates"


class NotificationRepository(Protocol):
    def insert(self, data: Dict[str, Any]) -> Notification:  # pragma: no cover - Protocol
        ...

    def get(self, notification_id: str) -> Optional[Notification]:  # pragma: no cover - Protocol
        ...

    def update(
        self, notification_id: str, changes: Dict[str, Any]
    ) -> Optional[Notification]:  # pragma: no cover - Protocol
        ...

    def list(
        self,
        filters: NotificationFilters,
        *,
        offset: int,
        limit: int,
    ) -> Tuple[List[Notification], int]:  # pragma: no cover - Protocol
        ...


class TemplateRepository(Protocol):
    def insert(self, data: Dict[str, Any]) -> NotificationTemplate:  # pragma: no cover - Protocol
        ...

    def get(self, template_id: str) -> Optional[NotificationTemplate]:  # pragma: no cover - Protocol
        ...

    def list(
        self, *, type_: Optional[NotificationType] = None
    ) -> List[NotificationTemplate]:  # pragma: no cover - Protocol
        ...

    def get_default(
        self, type_: NotificationType
    ) -> Optional[NotificationTemplate]:  # pragma: no cover - Protocol
        ...

    def clear_default(
        self, type_: NotificationType, *, exclude_id: Optional[str] = None
    ) -> int:  # pragma: no cover - Protocol
        ...

    def update(
        self, template_id: str, changes: Dict[str, Any]
    ) -> Optional[NotificationTemplate]:  # pragma: no cover - Protocol
        ...

    def delete(self, template_id: str) -> bool:  # pragma: no cover - Protocol
        ...


def _to_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, datetime):
            payload[key] = value.isoformat()
        elif isinstance(value, Enum):
            payload[key] = value.value
        else:
            payload[key] = value
    return payload


# ---- Supabase 実装 ----------------------------------------------------


class SupabaseNotificationRepository:
    def __init__(self, client: SupabaseRestClient) -> None:
        self._client = client

    def insert(self, data: Dict[str, Any]) -> Notification:
        row = self._client.insert(NOTIFICATIONS_TABLE, _to_payload(data))
        return Notification.model_validate(row)

    def get(self, notification_id: str) -> Optional[Notification]:
        row = self._client.select_one(NOTIFICATIONS_TABLE, {"id": f"eq.{notification_id}"})
        if row is None:
            return None
        return Notification.model_validate(row)

    def update(self, notification_id: str, changes: Dict[str, Any]) -> Optional[Notification]:
        rows = self._client.update(
            NOTIFICATIONS_TABLE,
            {"id": f"eq.{notification_id}"},
            _to_payload(changes),
        )
        if not rows:
            return None
        return Notification.model_validate(rows[0])

    @staticmethod
    def _build_filters(filters: NotificationFilters) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if filters.type is not None:
            params["type"] = f"eq.{filters.type.value}"
        if filters.status is not None:
            params["status"] = f"eq.{filters.status.value}"
        if filters.user_id:
            params["user_id"] = f"eq.{filters.user_id}"
        if filters.membership_id:
            params["membership_id"] = f"eq.{filters.membership_id}"

        date_conditions = []
        if filters.date_from is not None:
            date_conditions.append(f"created_at.gte.{filters.date_from.isoformat()}")
        if filters.date_to is not None:
            date_conditions.append(f"created_at.lte.{filters.date_to.isoformat()}")
        if date_conditions:
            params["and"] = f"({','.join(date_conditions)})"
        return params

    def list(
        self,
        filters: NotificationFilters,
        *,
        offset: int,
        limit: int,
    ) -> Tuple[List[Notification], int]:
        rows, total = self._client.select(
            NOTIFICATIONS_TABLE,
            self._build_filters(filters),
            order="created_at.desc",
            limit=limit,
            offset=offset,
            count=True,
        )
        items = [Notification.model_validate(row) for row in rows]
        return items, total if total is not None else len(items)


class SupabaseTemplateRepository:
    def __init__(self, client: SupabaseRestClient) -> None:
        self._client = client

    def insert(self, data: Dict[str, Any]) -> NotificationTemplate:
        row = self._client.insert(TEMPLATES_TABLE, _to_payload(data))
        return NotificationTemplate.model_validate(row)

    def get(self, template_id: str) -> Optional[NotificationTemplate]:
        row = self._client.select_one(TEMPLATES_TABLE, {"id": f"eq.{template_id}"})
        if row is None:
            return None
        return NotificationTemplate.model_validate(row)

    def list(self, *, type_: Optional[NotificationType] = None) -> List[NotificationTemplate]:
        filters = {"type": f"eq.{type_.value}"} if type_ is not None else {}
        rows, _ = self._client.select(TEMPLATES_TABLE, filters, order="created_at.desc")
        return [NotificationTemplate.model_validate(row) for row in rows]

    def get_default(self, type_: NotificationType) -> Optional[NotificationTemplate]:
        row = self._client.select_one(
            TEMPLATES_TABLE,
            {"type": f"eq.{type_.value}", "is_default": "is.true"},
        )
        if row is None:
            return None
        return NotificationTemplate.model_validate(row)

    def clear_default(
        self,
        type_: NotificationType,
        *,
        exclude_id: Optional[str] = None,
    ) -> int:
        filters: Dict[str, Any] = {"type": f"eq.{type_.value}", "is_default": "is.true"}
        if exclude_id:
            filters["id"] = f"neq.{exclude_id}"
        rows = self._client.update(TEMPLATES_TABLE, filters, {"is_default": False})
        return len(rows)

    def update(self, template_id: str, changes: Dict[str, Any]) -> Optional[NotificationTemplate]:
        rows = self._client.update(
            TEMPLATES_TABLE,
            {"id": f"eq.{template_id}"},
            _to_payload(changes),
        )
        if not rows:
            return None
        return NotificationTemplate.model_validate(rows[0])

    def delete(self, template_id: str) -> bool:
        rows = self._client.delete(TEMPLATES_TABLE, {"id": f"eq.{template_id}"})
        return bool(rows)


# ---- インメモリ実装 ---------------------------------------------------


class InMemoryNotificationRepository:
    """dict を保存先とする実装。本番では使わない。"""

    def __init__(self) -> None:
        self._rows: Dict[str, Notification] = {}

    def insert(self, data: Dict[str, Any]) -> Notification:
        notification_id = data.get("id") or str(uuid.uuid4())
        notification = Notification.model_validate({**data, "id": notification_id})
        self._rows[notification_id] = notification
        return notification

    def get(self, notification_id: str) -> Optional[Notification]:
        return self._rows.get(notification_id)

    def update(self, notification_id: str, changes: Dict[str, Any]) -> Optional[Notification]:
        current = self._rows.get(notification_id)
        if current is None:
            return None
        updated = current.model_copy(update=changes)
        self._rows[notification_id] = updated
        return updated

    @staticmethod
    def _matches(item: Notification, filters: NotificationFilters) -> bool:
        if filters.type is not None and item.type != filters.type:
            return False
        if filters.status is not None and item.status != filters.status:
            return False
        if filters.user_id and item.user_id != filters.user_id:
            return False
        if filters.membership_id and item.membership_id != filters.membership_id:
            return False
        if filters.date_from is not None and item.created_at < filters.date_from:
            return False
        if filters.date_to is not None and item.created_at > filters.date_to:
            return False
        return True

    def list(
        self,
        filters: NotificationFilters,
        *,
        offset: int,
        limit: int,
    ) -> Tuple[List[Notification], int]:
        matched = [item for item in self._rows.values() if self._matches(item, filters)]
        matched.sort(key=lambda item: item.created_at, reverse=True)
        return matched[offset : offset + limit], len(matched)


class InMemoryTemplateRepository:
    """dict を保存先とする実装。本番では使わない。"""

    def __init__(self) -> None:
        self._rows: Dict[str, NotificationTemplate] = {}

    def insert(self, data: Dict[str, Any]) -> NotificationTemplate:
        template_id = data.get("id") or str(uuid.uuid4())
        template = NotificationTemplate.model_validate({**data, "id": template_id})
        self._rows[template_id] = template
        return template

    def get(self, template_id: str) -> Optional[NotificationTemplate]:
        return self._rows.get(template_id)

    def list(self, *, type_: Optional[NotificationType] = None) -> List[NotificationTemplate]:
        rows = [t for t in self._rows.values() if type_ is None or t.type == type_]
        return sorted(rows, key=lambda t: t.created_at, reverse=True)

    def get_default(self, type_: NotificationType) -> Optional[NotificationTemplate]:
        for template in self._rows.values():
            if template.type == type_ and template.is_default:
                return template
        return None

    def clear_default(
        self,
        type_: NotificationType,
        *,
        exclude_id: Optional[str] = None,
    ) -> int:
        cleared = 0
        for template_id, template in list(self._rows.items()):
            if template.type == type_ and template.is_default and template_id != exclude_id:
                self._rows[template_id] = template.model_copy(update={"is_default": False})
                cleared += 1
        return cleared

    def update(self, template_id: str, changes: Dict[str, Any]) -> Optional[NotificationTemplate]:
        current = self._rows.get(template_id)
        if current is None:
            return None
        updated = current.model_copy(update=changes)
        self._rows[template_id] = updated
        return updated

    def delete(self, template_id: str) -> bool:
        return self._rows.pop(template_id, None) is not None
