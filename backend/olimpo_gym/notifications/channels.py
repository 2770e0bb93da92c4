# backend/olimpo_gym/notifications/channels.py

"""
通知チャンネル（送信アダプタ）の実装。

- NotificationSender: send(recipient, content, subject) -> DeliveryResult の最小インターフェース
- LoggingEmailSender: メールプロバイダ未設定時のログ出力のみの Sender
- EmailSender: トランザクションメール API（Resend 互換）への HTTP 送信
- WhatsAppSender: WhatsApp Business (Cloud) API への送信。失敗・未設定時はディープリンクを記録
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote

import httpx

from olimpo_gym.errors import InvalidFormatError, ProviderError

from .config import NotificationSettings
from .schemas import DeliveryResult, NotificationStatus

logger = logging.getLogger(__name__)

WHATSAPP_LINK_BASE = "https://api.whatsapp.com/send/"

# 書式として許容する区切り文字（空白・ハイフン・ドット・括弧・スラッシュ）
_PHONE_SEPARATORS = re.compile(r"[\s\-.()/]")
_DIGITS = re.compile(r"^\d+$")


class NotificationSender(Protocol):
    """
    通知送信の最小インターフェース。

    実装例:
    - EmailSender: メール API 経由で送信
    - WhatsAppSender: WhatsApp Business API 経由で送信
    - LoggingEmailSender: ログ出力のみ
    """

    def send(
        self,
        recipient: str,
        content: str,
        subject: Optional[str] = None,
    ) -> DeliveryResult:  # pragma: no cover - Protocol
        ...


class LoggingEmailSender:
    """
    メールを Python の logger に記録するだけの Sender。

    - EMAIL_API_KEY 未設定時のデフォルト実装
    - 実際の外部サービスへの送信は行わない
    """

    def __init__(self, logger_: logging.Logger | None = None) -> None:
        self._logger = logger_ or logger

    def send(
        self,
        recipient: str,
        content: str,
        subject: Optional[str] = None,
    ) -> DeliveryResult:
        self._logger.info("[email][log-only] to=%s subject=%s\n%s", recipient, subject, content)
        return DeliveryResult(status=NotificationStatus.SENT)


class EmailSender:
    """
    トランザクションメール API への HTTP クライアント。

    POST {email_api_url} に {from, to, subject, text} を送る。
    2xx 以外・接続エラーは ProviderError。
    """

    def __init__(
        self,
        settings: NotificationSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not settings.email_configured:
            raise RuntimeError("EmailSender requires EMAIL_API_KEY to be set.")
        self._settings = settings
        self._transport = transport

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.email_api_key}",
        }

    def send(
        self,
        recipient: str,
        content: str,
        subject: Optional[str] = None,
    ) -> DeliveryResult:
        payload = {
            "from": self._settings.email_from,
            "to": [recipient],
            "subject": subject or "",
            "text": content,
        }

        try:
            with httpx.Client(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.post(
                    self._settings.email_api_url,
                    json=payload,
                    headers=self._build_headers(),
                )
        except httpx.RequestError as exc:  # 接続エラー・タイムアウトなど
            raise ProviderError(f"Email provider request failed: {exc}") from exc

        if response.status_code // 100 != 2:
            raise ProviderError(
                f"Email provider error: status_code={response.status_code}",
                status_code=response.status_code,
                body=_safe_body(response),
            )

        body = _safe_body(response)
        message_id = body.get("id") if isinstance(body, dict) else None
        return DeliveryResult(
            status=NotificationStatus.SENT,
            provider_message_id=message_id,
        )


def normalize_phone(raw: str, default_country_code: str) -> str:
    """
    WhatsApp API 向けに電話番号を数字だけの国際形式へ正規化する。

    - 空白・ハイフン・括弧などの区切り文字を取り除く
    - 先頭の "+" / "00" は国際形式の印として取り除く
    - 国際形式でなく、先頭が国番号でもなければ default_country_code を付与する
    - それ以外の文字が残る / 桁数が 8〜15 桁に収まらない場合は InvalidFormatError
    """
    value = _PHONE_SEPARATORS.sub("", raw.strip())

    international = False
    if value.startswith("+"):
        value = value[1:]
        international = True
    elif value.startswith("00"):
        value = value[2:]
        international = True

    if not value or not _DIGITS.match(value):
        raise InvalidFormatError(f"Invalid phone number: {raw!r}")

    if not international and not value.startswith(default_country_code):
        value = f"{default_country_code}{value.lstrip('0')}"

    if not 8 <= len(value) <= 15:
        raise InvalidFormatError(f"Invalid phone number length: {raw!r}")

    return value


def build_whatsapp_link(phone: str, message: str) -> str:
    """利用者がタップして送信するためのディープリンク URL を組み立てる。"""
    return f"{WHATSAPP_LINK_BASE}?phone={phone}&text={quote(message, safe='')}"


class WhatsAppSender:
    """
    WhatsApp Business (Cloud) API への送信アダプタ。

    - 設定（API トークン + 送信元電話番号 ID）があれば API で送信する
      （WHATSAPP_TEMPLATE_NAME があればテンプレートメッセージ、なければテキスト）
    - API エラー時・未設定時はディープリンク URL を組み立て、
      自動送信はできなかったものとして FAILED を返す（URL は error_message に残す）
    """

    def __init__(
        self,
        settings: NotificationSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def messages_url(self) -> str:
        base_url = self._settings.whatsapp_api_base_url.rstrip("/")
        return (
            f"{base_url}/{self._settings.whatsapp_api_version}"
            f"/{self._settings.whatsapp_phone_number_id}/messages"
        )

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.whatsapp_api_token}",
        }

    def _build_payload(self, phone: str, content: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": phone,
        }
        if self._settings.whatsapp_template_name:
            payload["type"] = "template"
            payload["template"] = {
                "name": self._settings.whatsapp_template_name,
                "language": {"code": self._settings.whatsapp_template_language},
                "components": [
                    {
                        "type": "body",
                        "parameters": [{"type": "text", "text": content}],
                    }
                ],
            }
        else:
            payload["type"] = "text"
            payload["text"] = {"preview_url": False, "body": content}
        return payload

    def _send_via_provider(self, phone: str, content: str) -> Optional[str]:
        try:
            with httpx.Client(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.post(
                    self.messages_url,
                    json=self._build_payload(phone, content),
                    headers=self._build_headers(),
                )
        except httpx.RequestError as exc:
            raise ProviderError(f"WhatsApp provider request failed: {exc}") from exc

        if response.status_code // 100 != 2:
            raise ProviderError(
                f"WhatsApp provider error: status_code={response.status_code}",
                status_code=response.status_code,
                body=_safe_body(response),
            )

        body = _safe_body(response)
        if isinstance(body, dict):
            messages = body.get("messages") or []
            if messages and isinstance(messages[0], dict):
                return messages[0].get("id")
        return None

    def send(
        self,
        recipient: str,
        content: str,
        subject: Optional[str] = None,
    ) -> DeliveryResult:
        phone = normalize_phone(recipient, self._settings.whatsapp_default_country_code)
        link = build_whatsapp_link(phone, content)

        if not self._settings.whatsapp_configured:
            logger.info("WhatsApp provider not configured. Manual link generated for %s.", phone)
            return DeliveryResult(
                status=NotificationStatus.FAILED,
                error_message=f"WhatsApp provider not configured; manual link: {link}",
                fallback_url=link,
            )

        try:
            message_id = self._send_via_provider(phone, content)
        except ProviderError as exc:
            logger.warning("WhatsApp send failed for %s: %s. Falling back to manual link.", phone, exc)
            return DeliveryResult(
                status=NotificationStatus.FAILED,
                error_message=f"{exc.message}; manual link: {link}",
                fallback_url=link,
            )

        return DeliveryResult(
            status=NotificationStatus.SENT,
            provider_message_id=message_id,
        )


def _safe_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        # JSON でないレスポンスはそのままテキストで返す。
        return response.text
