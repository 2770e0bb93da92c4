# backend/olimpo_gym/users/repository.py

"""
会員プロフィールのリポジトリ。

- UserRepository: 読み取り専用インターフェース
- SupabaseUserRepository: profiles テーブル
- InMemoryUserRepository: テスト用
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol

from olimpo_gym.db.supabase import SupabaseRestClient

from .schemas import UserProfile

TABLE = "profiles"


class UserRepository(Protocol):
    def get(self, user_id: str) -> Optional[UserProfile]:  # pragma: no cover - Protocol
        ...


class SupabaseUserRepository:
    def __init__(self, client: SupabaseRestClient) -> None:
        self._client = client

    def get(self, user_id: str) -> Optional[UserProfile]:
        row = self._client.select_one(TABLE, {"id": f"eq.{user_id}"})
        if row is None:
            return None
        return UserProfile.model_validate(row)


class InMemoryUserRepository:
    def __init__(self, users: Iterable[UserProfile] = ()) -> None:
        self._users: Dict[str, UserProfile] = {user.id: user for user in users}

    def add(self, user: UserProfile) -> None:
        self._users[user.id] = user

    def get(self, user_id: str) -> Optional[UserProfile]:
        return self._users.get(user_id)
