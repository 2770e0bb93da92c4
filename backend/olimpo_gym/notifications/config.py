# backend/olimpo_gym/notifications/config.py

"""
通知チャンネル（メール / WhatsApp）関連の設定値読み出しモジュール。

- API キー類が未設定の場合はそのチャンネルを「プロバイダ未設定」として扱う
  （メール: ログ出力のみ / WhatsApp: ディープリンク URL を記録して FAILED）
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from olimpo_gym.utils.config import get_env, get_env_float


@dataclass(frozen=True)
class NotificationSettings:
    """
    通知送信に関する設定値のまとまり。
    """

    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: Optional[str] = None
    email_from: str = "Olimpo Gym <no-reply@olimpo-gym.com>"
    whatsapp_api_base_url: str = "https://graph.facebook.com"
    whatsapp_api_version: str = "v17.0"
    whatsapp_api_token: Optional[str] = None
    whatsapp_phone_number_id: Optional[str] = None
    whatsapp_template_name: Optional[str] = None
    whatsapp_template_language: str = "es_AR"
    whatsapp_default_country_code: str = "54"
    timeout_seconds: float = 10.0
    bulk_success_threshold: float = 0.9
    gym_name: str = "Olimpo Gym"

    @property
    def email_configured(self) -> bool:
        return bool(self.email_api_key)

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.whatsapp_api_token and self.whatsapp_phone_number_id)


@lru_cache()
def get_notification_settings() -> NotificationSettings:
    """
    NotificationSettings を環境変数から構築する。

    任意（すべて）:
      - EMAIL_API_URL / EMAIL_API_KEY / EMAIL_FROM
      - WHATSAPP_API_TOKEN / WHATSAPP_PHONE_NUMBER_ID / WHATSAPP_API_VERSION
      - WHATSAPP_TEMPLATE_NAME / WHATSAPP_TEMPLATE_LANGUAGE / WHATSAPP_DEFAULT_COUNTRY_CODE
      - NOTIFICATION_TIMEOUT_SECONDS（デフォルト 10秒）
      - BULK_SUCCESS_THRESHOLD（デフォルト 0.9）
      - GYM_NAME
    """
    defaults = NotificationSettings()

    bulk_success_threshold = get_env_float(
        "BULK_SUCCESS_THRESHOLD",
        default=defaults.bulk_success_threshold,
    )
    if not 0 <= bulk_success_threshold <= 1:
        raise RuntimeError("BULK_SUCCESS_THRESHOLD must be between 0 and 1")

    country_code = get_env(
        "WHATSAPP_DEFAULT_COUNTRY_CODE",
        default=defaults.whatsapp_default_country_code,
        required=False,
    ).lstrip("+")
    if not country_code.isdigit():
        raise RuntimeError(
            f"Invalid WHATSAPP_DEFAULT_COUNTRY_CODE value: {country_code!r}"
        )

    return NotificationSettings(
        email_api_url=get_env("EMAIL_API_URL", default=defaults.email_api_url, required=False),
        email_api_key=get_env("EMAIL_API_KEY", required=False),
        email_from=get_env("EMAIL_FROM", default=defaults.email_from, required=False),
        whatsapp_api_base_url=get_env(
            "WHATSAPP_API_BASE_URL",
            default=defaults.whatsapp_api_base_url,
            required=False,
        ),
        whatsapp_api_version=get_env(
            "WHATSAPP_API_VERSION",
            default=defaults.whatsapp_api_version,
            required=False,
        ),
        whatsapp_api_token=get_env("WHATSAPP_API_TOKEN", required=False),
        whatsapp_phone_number_id=get_env("WHATSAPP_PHONE_NUMBER_ID", required=False),
        whatsapp_template_name=get_env("WHATSAPP_TEMPLATE_NAME", required=False),
        whatsapp_template_language=get_env(
            "WHATSAPP_TEMPLATE_LANGUAGE",
            default=defaults.whatsapp_template_language,
            required=False,
        ),
        whatsapp_default_country_code=country_code,
        timeout_seconds=get_env_float(
            "NOTIFICATION_TIMEOUT_SECONDS",
            default=defaults.timeout_seconds,
        ),
        bulk_success_threshold=bulk_success_threshold,
        gym_name=get_env("GYM_NAME", default=defaults.gym_name, required=False),
    )
