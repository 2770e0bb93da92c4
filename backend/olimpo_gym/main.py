# backend/olimpo_gym/main.py

"""
バックエンドアプリケーションのエントリーポイント。

- /api/memberships: メンバーシップのライフサイクル管理
- /api/notifications: 通知送信・通知記録・テンプレート管理
- /health: ヘルスチェック
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from olimpo_gym.automation.scheduler import get_scheduler
from olimpo_gym.memberships.router import router as memberships_router
from olimpo_gym.notifications.router import router as notifications_router
from olimpo_gym.utils.config import get_app_settings
from olimpo_gym.utils.logging import configure_logging

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_app_settings()
    scheduler = get_scheduler() if settings.enable_scheduler else None
    if scheduler is not None:
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


def create_app() -> FastAPI:
    """
    FastAPI アプリケーションファクトリ。

    ENABLE_SCHEDULER=true の場合のみ、起動時に定期ジョブを開始する。
    """
    configure_logging()
    settings = get_app_settings()

    app = FastAPI(title="Olimpo Gym API", lifespan=lifespan)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # ルーター登録
    app.include_router(memberships_router, prefix=API_PREFIX)
    app.include_router(notifications_router, prefix=API_PREFIX)

    @app.get("/health", tags=["health"])
    def health_check() -> dict:
        """
        簡易ヘルスチェックエンドポイント。
        モニタリングや動作確認用。
        """
        return {"status": "ok"}

    return app


# uvicorn 実行時のエントリーポイント
app = create_app()
