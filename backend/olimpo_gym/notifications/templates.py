# backend/olimpo_gym/notifications/templates.py

"""
テンプレート本文の {{variable}} 置換。

- キーは大文字小文字を区別する
- {{ name }} のようにキー前後の空白は許容する
- variables に無いキーは {{key}} のまま残す（エスケープ・入れ子・条件分岐はなし）
"""

from __future__ import annotations

import re
from typing import Any, List, Mapping

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.]*)\s*\}\}")


def render(content: str, variables: Mapping[str, Any]) -> str:
    """
    content 中の {{key}} を variables[key] の文字列表現で置き換える。
    """

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        return str(variables[key])

    return _PLACEHOLDER.sub(_replace, content)


def find_placeholders(content: str) -> List[str]:
    """content に含まれるキーを初出順・重複なしで返す。"""
    seen: List[str] = []
    for match in _PLACEHOLDER.finditer(content):
        key = match.group(1)
        if key not in seen:
            seen.append(key)
    return seen


def unresolved_placeholders(content: str, variables: Mapping[str, Any]) -> List[str]:
    """render しても置換されずに残るキーの一覧。"""
    return [key for key in find_placeholders(content) if key not in variables]
