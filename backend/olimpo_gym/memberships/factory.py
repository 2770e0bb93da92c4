# backend/olimpo_gym/memberships/factory.py

"""
MembershipService の簡易ファクトリ。

- 保存先は Supabase の memberships / profiles テーブル
- 通知は notifications.factory の共有インスタンスを使う
"""

from __future__ import annotations

from typing import Optional

from olimpo_gym.db.state import get_supabase_client
from olimpo_gym.notifications.factory import get_notification_service
from olimpo_gym.users.repository import SupabaseUserRepository

from .config import get_membership_settings
from .repository import SupabaseMembershipRepository
from .service import MembershipService

_membership_service: Optional[MembershipService] = None


def get_membership_service() -> MembershipService:
    global _membership_service
    if _membership_service is None:
        client = get_supabase_client()
        _membership_service = MembershipService(
            SupabaseMembershipRepository(client),
            settings=get_membership_settings(),
            notification_service=get_notification_service(),
            user_repository=SupabaseUserRepository(client),
        )
    return _membership_service


def reset_membership_service() -> None:
    """テスト用にシングルトン状態をリセットする。"""
    global _membership_service
    _membership_service = None
