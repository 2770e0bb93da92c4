# backend/olimpo_gym/memberships/repository.py

"""
メンバーシップの永続化レイヤ。

- MembershipRepository: サービス層が依存するインターフェース
- SupabaseMembershipRepository: memberships テーブル（本番の保存先）
- InMemoryMembershipRepository: テスト・ローカル検証用
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from olimpo_gym.db.supabase import SupabaseRestClient

from .schemas import Membership, MembershipStatus

TABLE = "memberships"


class MembershipRepository(Protocol):
    """
    メンバーシップ永続化の最小インターフェース。

    日時の比較はすべて end_date に対して行う。
    """

    def insert(self, data: Dict[str, Any]) -> Membership:  # pragma: no cover - Protocol
        ...

    def get(self, membership_id: str) -> Optional[Membership]:  # pragma: no cover - Protocol
        ...

    def list(self, *, user_id: Optional[str] = None) -> List[Membership]:  # pragma: no cover - Protocol
        ...

    def list_active_ending_before(self, moment: datetime) -> List[Membership]:  # pragma: no cover - Protocol
        ...

    def list_active_ending_between(
        self, start: datetime, end: datetime
    ) -> List[Membership]:  # pragma: no cover - Protocol
        ...

    def list_auto_renew_due(self, moment: datetime) -> List[Membership]:  # pragma: no cover - Protocol
        ...

    def update(
        self,
        membership_id: str,
        changes: Dict[str, Any],
        *,
        expected_status: Optional[MembershipStatus] = None,
        ending_before: Optional[datetime] = None,
    ) -> Optional[Membership]:  # pragma: no cover - Protocol
        """
        条件付き更新。

        expected_status / ending_before を指定した場合、現在の status が一致し
        end_date がその時刻より前の行だけを更新する。該当なしは None。
        """
        ...

    def delete(self, membership_id: str) -> bool:  # pragma: no cover - Protocol
        ...


def _to_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    """datetime / Decimal / Enum を JSON で送れる形に変換する。"""
    payload: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, datetime):
            payload[key] = value.isoformat()
        elif isinstance(value, Enum):
            payload[key] = value.value
        elif isinstance(value, Decimal):
            payload[key] = str(value)
        else:
            payload[key] = value
    return payload


class SupabaseMembershipRepository:
    def __init__(self, client: SupabaseRestClient) -> None:
        self._client = client

    def insert(self, data: Dict[str, Any]) -> Membership:
        row = self._client.insert(TABLE, _to_payload(data))
        return Membership.model_validate(row)

    def get(self, membership_id: str) -> Optional[Membership]:
        row = self._client.select_one(TABLE, {"id": f"eq.{membership_id}"})
        if row is None:
            return None
        return Membership.model_validate(row)

    def list(self, *, user_id: Optional[str] = None) -> List[Membership]:
        filters = {"user_id": f"eq.{user_id}"} if user_id else {}
        rows, _ = self._client.select(TABLE, filters, order="created_at.desc")
        return [Membership.model_validate(row) for row in rows]

    def list_active_ending_before(self, moment: datetime) -> List[Membership]:
        rows, _ = self._client.select(
            TABLE,
            {
                "status": f"eq.{MembershipStatus.ACTIVE.value}",
                "end_date": f"lt.{moment.isoformat()}",
            },
            order="end_date.asc",
        )
        return [Membership.model_validate(row) for row in rows]

    def list_active_ending_between(self, start: datetime, end: datetime) -> List[Membership]:
        # 同じカラムに 2 条件を付けるため and=(...) 構文を使う
        rows, _ = self._client.select(
            TABLE,
            {
                "status": f"eq.{MembershipStatus.ACTIVE.value}",
                "and": f"(end_date.gte.{start.isoformat()},end_date.lte.{end.isoformat()})",
            },
            order="end_date.asc",
        )
        return [Membership.model_validate(row) for row in rows]

    def list_auto_renew_due(self, moment: datetime) -> List[Membership]:
        rows, _ = self._client.select(
            TABLE,
            {
                "auto_renew": "is.true",
                "status": f"in.({MembershipStatus.ACTIVE.value},{MembershipStatus.EXPIRED.value})",
                "end_date": f"lt.{moment.isoformat()}",
            },
            order="end_date.asc",
        )
        return [Membership.model_validate(row) for row in rows]

    def update(
        self,
        membership_id: str,
        changes: Dict[str, Any],
        *,
        expected_status: Optional[MembershipStatus] = None,
        ending_before: Optional[datetime] = None,
    ) -> Optional[Membership]:
        filters = {"id": f"eq.{membership_id}"}
        if expected_status is not None:
            filters["status"] = f"eq.{expected_status.value}"
        if ending_before is not None:
            filters["end_date"] = f"lt.{ending_before.isoformat()}"
        rows = self._client.update(TABLE, filters, _to_payload(changes))
        if not rows:
            return None
        return Membership.model_validate(rows[0])

    def delete(self, membership_id: str) -> bool:
        rows = self._client.delete(TABLE, {"id": f"eq.{membership_id}"})
        return bool(rows)


class InMemoryMembershipRepository:
    """
    dict を保存先とする実装。プロセス終了で消えるため本番では使わない。
    """

    def __init__(self) -> None:
        self._rows: Dict[str, Membership] = {}

    def insert(self, data: Dict[str, Any]) -> Membership:
        membership_id = data.get("id") or str(uuid.uuid4())
        membership = Membership.model_validate({**data, "id": membership_id})
        self._rows[membership_id] = membership
        return membership

    def get(self, membership_id: str) -> Optional[Membership]:
        return self._rows.get(membership_id)

    def list(self, *, user_id: Optional[str] = None) -> List[Membership]:
        rows = [m for m in self._rows.values() if user_id is None or m.user_id == user_id]
        return sorted(rows, key=lambda m: m.created_at or m.start_date, reverse=True)

    def list_active_ending_before(self, moment: datetime) -> List[Membership]:
        rows = [
            m
            for m in self._rows.values()
            if m.status == MembershipStatus.ACTIVE and m.end_date < moment
        ]
        return sorted(rows, key=lambda m: m.end_date)

    def list_active_ending_between(self, start: datetime, end: datetime) -> List[Membership]:
        rows = [
            m
            for m in self._rows.values()
            if m.status == MembershipStatus.ACTIVE and start <= m.end_date <= end
        ]
        return sorted(rows, key=lambda m: m.end_date)

    def list_auto_renew_due(self, moment: datetime) -> List[Membership]:
        rows = [
            m
            for m in self._rows.values()
            if m.auto_renew
            and m.status in (MembershipStatus.ACTIVE, MembershipStatus.EXPIRED)
            and m.end_date < moment
        ]
        return sorted(rows, key=lambda m: m.end_date)

    def update(
        self,
        membership_id: str,
        changes: Dict[str, Any],
        *,
        expected_status: Optional[MembershipStatus] = None,
        ending_before: Optional[datetime] = None,
    ) -> Optional[Membership]:
        current = self._rows.get(membership_id)
        if current is None:
            return None
        if expected_status is not None and current.status != expected_status:
            return None
        if ending_before is not None and current.end_date >= ending_before:
            return None
        updated = current.model_copy(update=changes)
        self._rows[membership_id] = updated
        return updated

    def delete(self, membership_id: str) -> bool:
        return self._rows.pop(membership_id, None) is not None
