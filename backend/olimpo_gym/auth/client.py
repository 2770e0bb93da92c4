# backend/olimpo_gym/auth/client.py

"""
Supabase Auth との通信を担当するクライアントモジュール。

トークンの検証自体は Supabase 側に任せ、GET /auth/v1/user の結果からユーザーを組み立てる。
"""

from __future__ import annotations

from typing import Any, Dict

import httpx

from olimpo_gym.db.config import SupabaseConfig, get_supabase_config
from olimpo_gym.errors import AuthenticationError, ProviderError

from .schemas import CurrentUser, Role


class SupabaseAuthClient:
    def __init__(
        self,
        config: SupabaseConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or get_supabase_config()
        self._transport = transport

    def _build_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "apikey": self._config.anon_key or self._config.service_key,
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    @staticmethod
    def _resolve_role(data: Dict[str, Any]) -> Role:
        """
        app_metadata.role からロールを決める。

        user_metadata は本人が書き換えられるため権限判定には使わない。
        """
        app_metadata = data.get("app_metadata") or {}
        if str(app_metadata.get("role", "")).lower() == Role.ADMIN.value:
            return Role.ADMIN
        return Role.USER

    def get_user(self, access_token: str) -> CurrentUser:
        """
        アクセストークンに対応するユーザーを返す。

        :raises AuthenticationError: トークンが無効・期限切れ（401/403）の場合
        :raises ProviderError: Supabase Auth 側のその他のエラー・接続エラー
        """
        try:
            with httpx.Client(
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.get(
                    f"{self._config.auth_url}/user",
                    headers=self._build_headers(access_token),
                )
        except httpx.RequestError as exc:
            raise ProviderError(f"Failed to call Supabase Auth: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid or expired token.")
        if response.status_code >= 400:
            raise ProviderError(
                f"Supabase Auth error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        data: Dict[str, Any] = response.json()
        user_id = data.get("id")
        if not user_id:
            raise AuthenticationError("Supabase Auth response missing user id.")

        return CurrentUser(
            id=str(user_id),
            email=data.get("email"),
            role=self._resolve_role(data),
        )
