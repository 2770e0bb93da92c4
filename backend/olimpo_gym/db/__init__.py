"""
Supabase (PostgREST / Auth) 連携モジュール。

- config: SUPABASE_URL / SUPABASE_SERVICE_KEY などの設定値
- supabase: PostgREST への薄い HTTP クライアント
- state: アプリ全体で共有するクライアントインスタンス
"""

from .config import SupabaseConfig, get_supabase_config  # noqa: F401
from .supabase import SupabaseError, SupabaseRestClient  # noqa: F401
