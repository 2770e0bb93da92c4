# backend/olimpo_gym/utils/config.py

"""
環境変数読み取り用のユーティリティ。
Supabase / 通知 / メンバーシップの各設定モジュールから共通利用する。
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

_dotenv_loaded = False


def _ensure_dotenv_loaded() -> None:
    """ローカル開発用に .env を初回だけ読み込む。"""
    global _dotenv_loaded
    if not _dotenv_loaded:
        load_dotenv()
        _dotenv_loaded = True


class EnvVarMissingError(RuntimeError):
    """必須環境変数が設定されていない場合に投げる例外。"""

    def __init__(self, name: str) -> None:
        super().__init__(f"Required environment variable '{name}' is not set.")
        self.name = name


def get_env(
    name: str,
    default: Optional[str] = None,
    *,
    required: bool = True,
) -> str:
    """
    環境変数を取得するヘルパー。

    :param name: 環境変数名
    :param default: デフォルト値（required=False の場合のみ使用）
    :param required: True の場合、未設定なら例外を投げる
    :return: 文字列値
    """
    _ensure_dotenv_loaded()
    value = os.getenv(name)

    if value is None or value == "":
        if required:
            raise EnvVarMissingError(name)
        return default

    return value


def get_env_int(name: str, default: int) -> int:
    """
    整数値の環境変数を取得するヘルパー。

    不正な値が入っていた場合は RuntimeError にする。
    """
    raw = get_env(name, required=False)
    if raw is None:
        return default

    try:
        return int(raw)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(
            f"Invalid integer value for env var {name}: {raw!r}"
        ) from exc


def get_env_float(name: str, default: float) -> float:
    raw = get_env(name, required=False)
    if raw is None:
        return default

    try:
        return float(raw)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(
            f"Invalid float value for env var {name}: {raw!r}"
        ) from exc


def get_env_bool(name: str, default: bool = False) -> bool:
    """
    真偽値の環境変数を取得するヘルパー。

    "1" / "true" / "yes" / "on" を True とみなす（大文字小文字は無視）。
    """
    raw = get_env(name, required=False)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppSettings:
    """
    アプリ全体に関わる設定値。
    """

    environment: str
    log_level: Optional[str]
    cors_origins: List[str]
    enable_scheduler: bool

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_app_settings() -> AppSettings:
    """
    環境変数から AppSettings を構築する。

    任意:
      - ENVIRONMENT (local / staging / production, デフォルト: local)
      - LOG_LEVEL (未設定なら ENVIRONMENT から決める)
      - CORS_ORIGINS (カンマ区切り, デフォルト: http://localhost:5173)
      - ENABLE_SCHEDULER (デフォルト: false)
    """
    environment = get_env("ENVIRONMENT", default="local", required=False)
    if environment not in ("local", "staging", "production"):
        raise RuntimeError(f"Invalid ENVIRONMENT value: {environment!r}")

    raw_origins = get_env("CORS_ORIGINS", default="http://localhost:5173", required=False)
    cors_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

    return AppSettings(
        environment=environment,
        log_level=get_env("LOG_LEVEL", required=False),
        cors_origins=cors_origins,
        enable_scheduler=get_env_bool("ENABLE_SCHEDULER", default=False),
    )
