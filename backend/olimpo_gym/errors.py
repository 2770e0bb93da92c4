# backend/olimpo_gym/errors.py

"""
アプリ共通のドメイン例外。

ルーター層でステータスコードに変換する（olimpo_gym.api.errors を参照）。
"""

from __future__ import annotations

from typing import Any, Optional


class GymError(Exception):
    """ドメイン例外の基底クラス。"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GymError):
    """入力値が業務ルールに合わない場合（例: kickboxing で days_per_week 未指定）。"""


class InvalidFormatError(ValidationError):
    """電話番号などの書式が不正な場合。"""


class NotFoundError(GymError):
    """対象のメンバーシップ / テンプレート / 通知が存在しない場合。"""


class ConflictError(GymError):
    """重複や、デフォルトテンプレートの削除など状態と矛盾する操作。"""


class ProviderError(GymError):
    """メール / WhatsApp など外部プロバイダ呼び出しの失敗。"""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RepositoryError(GymError):
    """永続化レイヤ（Supabase など）の失敗。元のメッセージを保持する。"""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class AuthenticationError(GymError):
    """Bearer トークンが無い・無効な場合。"""


class PermissionDeniedError(GymError):
    """管理者権限が必要な操作を一般ユーザーが行おうとした場合。"""
