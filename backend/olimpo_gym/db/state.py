# backend/olimpo_gym/db/state.py

"""
SupabaseRestClient のシンプルな状態管理モジュール。

- アプリ全体で共有する SupabaseRestClient インスタンスを提供
- テスト時にリセットできるようにする
"""

from __future__ import annotations

from typing import Optional

from .supabase import SupabaseRestClient

_supabase_client: Optional[SupabaseRestClient] = None


def get_supabase_client() -> SupabaseRestClient:
    """
    共有の SupabaseRestClient インスタンスを返す。

    初回呼び出し時にのみ生成し、それ以降は同じインスタンスを返す。
    """
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = SupabaseRestClient()
    return _supabase_client


def reset_state() -> None:
    """
    テスト用にシングルトン状態をリセットする。
    """
    global _supabase_client
    if _supabase_client is not None:
        _supabase_client.close()
    _supabase_client = None
