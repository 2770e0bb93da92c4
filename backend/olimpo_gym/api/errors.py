# backend/olimpo_gym/api/errors.py

"""
ドメイン例外 → HTTPException の変換ヘルパー。

- GymError のサブクラスはそれぞれ対応するステータスコードへ
- 想定外の例外は 500。production 以外ではトレースバックを detail に含める
"""

from __future__ import annotations

import logging
import traceback

from fastapi import HTTPException, status

from olimpo_gym.errors import (
    AuthenticationError,
    ConflictError,
    GymError,
    NotFoundError,
    PermissionDeniedError,
    ProviderError,
    RepositoryError,
    ValidationError,
)
from olimpo_gym.utils.config import get_app_settings

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
    (RepositoryError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_exception(exc: GymError) -> HTTPException:
    """GymError を対応する HTTPException に変換する。"""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=exc.message,
    )


def internal_error(exc: Exception, message: str) -> HTTPException:
    """
    想定外の例外を 500 に変換する。

    スタックトレースは production 以外でのみ detail に含める。
    """
    logger.error("%s (%s: %s)", message, type(exc).__name__, exc)
    detail = message
    if not get_app_settings().is_production:
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        detail = f"{message}\n{trace}"
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
