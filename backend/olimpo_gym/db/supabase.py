# backend/olimpo_gym/db/supabase.py

"""
Supabase PostgREST への同期 HTTP クライアント。

service role key を使うため RLS はバイパスされる。アクセス制御はルーター層で行う。
フィルタは PostgREST の書式（例: {"status": "eq.ACTIVE", "end_date": "lt.2025-01-01"}）で渡す。
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import httpx

from olimpo_gym.errors import RepositoryError

from .config import SupabaseConfig, get_supabase_config


class SupabaseError(RepositoryError):
    """Supabase REST 呼び出しの失敗。"""


class SupabaseRestClient:
    """
    PostgREST の薄いラッパー。

    - select / insert / update / delete
    - 件数取得（Prefer: count=exact → Content-Range ヘッダ）
    """

    def __init__(
        self,
        config: SupabaseConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or get_supabase_config()
        self._http = httpx.Client(
            base_url=self._config.rest_url,
            headers={
                "apikey": self._config.service_key,
                "Authorization": f"Bearer {self._config.service_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self._config.timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Any | None = None,
        headers: Dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = self._http.request(
                method,
                f"/{table}",
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.RequestError as exc:
            raise SupabaseError(f"Failed to call Supabase REST for '{table}': {exc}") from exc

        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST {method} failed for '{table}': {response.text}",
                status_code=response.status_code,
                detail=response.text,
            )
        return response

    @staticmethod
    def _parse_total(response: httpx.Response) -> Optional[int]:
        # Content-Range: 0-9/42 または */0
        content_range = response.headers.get("content-range")
        if not content_range or "/" not in content_range:
            return None
        total = content_range.rsplit("/", 1)[1]
        if total == "*":
            return None
        try:
            return int(total)
        except ValueError:
            return None

    def select(
        self,
        table: str,
        filters: Dict[str, Any] | None = None,
        *,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        count: bool = False,
    ) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        """
        行を取得する。

        :param order: 例 "created_at.desc"
        :param count: True の場合、フィルタ条件に一致する総件数も返す
        :return: (rows, total_count)。count=False の場合 total_count は None
        """
        params: Dict[str, Any] = {"select": "*", **(filters or {})}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset

        headers = {"Prefer": "count=exact"} if count else None
        response = self._request("GET", table, params=params, headers=headers)

        rows: List[Dict[str, Any]] = response.json()
        return rows, (self._parse_total(response) if count else None)

    def select_one(
        self,
        table: str,
        filters: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        rows, _ = self.select(table, filters, limit=1)
        if not rows:
            return None
        return rows[0]

    def insert(self, table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self._request(
            "POST",
            table,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        rows: List[Dict[str, Any]] = response.json()
        if not rows:
            raise SupabaseError(f"Empty insert response for table '{table}'")
        return rows[0]

    def update(
        self,
        table: str,
        filters: Dict[str, Any],
        payload: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        response = self._request(
            "PATCH",
            table,
            params=filters,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        return response.json()

    def delete(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = self._request(
            "DELETE",
            table,
            params=filters,
            headers={"Prefer": "return=representation"},
        )
        return response.json()
