# backend/olimpo_gym/memberships/schemas.py

"""
メンバーシップ関連の Pydantic スキーマ定義。

- Membership: memberships テーブル 1 行分
- /memberships のリクエスト / レスポンス
- バッチ処理（期限切れ判定・自動更新）の結果サマリ
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MembershipType(str, Enum):
    """プラン種別。"""

    MONTHLY = "MONTHLY"
    KICKBOXING = "KICKBOXING"


class MembershipStatus(str, Enum):
    """
    メンバーシップの状態。

    - ACTIVE: 有効（end_date が未来）
    - EXPIRED: 期限切れ判定済み
    - PENDING: 支払い待ちなど、まだ有効化されていない
    """

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    PENDING = "PENDING"


class Membership(BaseModel):
    """
    memberships テーブル 1 行分。

    不変条件: end_date > start_date
    """

    id: str
    user_id: str
    type: MembershipType
    status: MembershipStatus
    start_date: datetime
    end_date: datetime
    days_per_week: Optional[int] = None
    price: Decimal = Decimal("0")
    auto_renew: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MembershipCreateRequest(BaseModel):
    """
    POST /memberships のリクエストボディ。

    end_date / status はサーバ側で決めるため受け取らない。
    """

    user_id: str = Field(..., min_length=1, description="対象会員のユーザー ID")
    type: MembershipType = Field(..., description="プラン種別（MONTHLY / KICKBOXING）")
    price: Decimal = Field(..., ge=0, description="プラン料金")
    start_date: Optional[datetime] = Field(
        None,
        description="開始日時。未指定の場合は現在時刻。",
    )
    days_per_week: Optional[int] = Field(
        None,
        ge=1,
        le=7,
        description="週あたりの利用日数。KICKBOXING の場合は必須。",
    )
    auto_renew: bool = Field(False, description="期限切れ時に自動更新するかどうか")


class MembershipUpdateRequest(BaseModel):
    """
    PATCH /memberships/{id} のリクエストボディ。指定された項目のみ更新する。
    """

    type: Optional[MembershipType] = None
    status: Optional[MembershipStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_per_week: Optional[int] = Field(None, ge=1, le=7)
    price: Optional[Decimal] = Field(None, ge=0)
    auto_renew: Optional[bool] = None


class ExpirySweepResult(BaseModel):
    """check_expired_memberships の結果。"""

    checked: int = Field(..., ge=0, description="期限切れ候補として取得した件数")
    expired_ids: List[str] = Field(default_factory=list, description="EXPIRED に更新できた ID")
    failed_ids: List[str] = Field(default_factory=list, description="更新に失敗した ID")


class ExpiringMembershipsResult(BaseModel):
    """find_expiring_memberships の結果。"""

    memberships: List[Membership] = Field(default_factory=list)
    count: int = Field(..., ge=0)
    notified: int = Field(0, ge=0, description="通知送信に成功した件数")
    notification_failures: int = Field(0, ge=0, description="通知送信に失敗・スキップした件数")


class AutoRenewResult(BaseModel):
    """auto_renew_memberships の結果。"""

    checked: int = Field(..., ge=0)
    renewed_ids: List[str] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)
