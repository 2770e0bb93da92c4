"""
会員プロフィール参照用モジュール。

ユーザー登録・認証そのものは Supabase Auth 側の責務。
ここではリマインダー送信先（メール・電話）を引くための読み取り専用リポジトリのみ持つ。
"""

from .repository import (  # noqa: F401
    InMemoryUserRepository,
    SupabaseUserRepository,
    UserRepository,
)
from .schemas import UserProfile  # noqa: F401
