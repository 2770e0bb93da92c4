"""
通知レイヤ用モジュール群。

構成:
- schemas: 通知記録・テンプレート・API の Pydantic モデル
- templates: {{variable}} 置換
- channels: メール / WhatsApp の送信アダプタ
- repository / store: 通知記録とテンプレートの永続化
- service: 送信のオーケストレーションとテンプレート管理
- factory: アプリ全体で共有する NotificationService の生成
- router: /notifications エンドポイント
"""

from .schemas import (  # noqa: F401
    NotificationStatus,
    NotificationType,
    SendOptions,
)
from .service import NotificationService  # noqa: F401
