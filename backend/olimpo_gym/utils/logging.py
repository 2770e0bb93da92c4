# backend/olimpo_gym/utils/logging.py

from __future__ import annotations

import logging
from logging import Logger

from .config import get_app_settings


def configure_logging() -> Logger:
    """
    ルートロガーを設定する。

    - production 以外は DEBUG、production は INFO
    - LOG_LEVEL が設定されていればそちらを優先する
    """
    settings = get_app_settings()

    if settings.log_level:
        log_level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(log_level, int):
            raise RuntimeError(f"Invalid LOG_LEVEL value: {settings.log_level!r}")
    else:
        log_level = logging.INFO if settings.is_production else logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    logger = logging.getLogger("olimpo_gym")
    logger.setLevel(log_level)
    return logger
