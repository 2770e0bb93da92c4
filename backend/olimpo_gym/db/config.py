# backend/olimpo_gym/db/config.py

"""
Supabase 連携に必要な設定値をまとめるモジュール。
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from olimpo_gym.utils.config import get_env, get_env_float


@dataclass(frozen=True)
class SupabaseConfig:
    """Supabase 用の設定値コンテナ。"""

    url: str
    service_key: str
    anon_key: Optional[str] = None
    timeout_seconds: float = 10.0

    @property
    def rest_url(self) -> str:
        return f"{self.url.rstrip('/')}/rest/v1"

    @property
    def auth_url(self) -> str:
        return f"{self.url.rstrip('/')}/auth/v1"


@lru_cache()
def get_supabase_config() -> SupabaseConfig:
    """
    環境変数から Supabase 設定を読み込む。

    必須:
      - SUPABASE_URL
      - SUPABASE_SERVICE_KEY

    任意:
      - SUPABASE_ANON_KEY
      - SUPABASE_TIMEOUT_SECONDS (デフォルト: 10)
    """
    return SupabaseConfig(
        url=get_env("SUPABASE_URL"),
        service_key=get_env("SUPABASE_SERVICE_KEY"),
        anon_key=get_env("SUPABASE_ANON_KEY", required=False),
        timeout_seconds=get_env_float("SUPABASE_TIMEOUT_SECONDS", default=10.0),
    )
