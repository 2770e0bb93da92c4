"""
メンバーシップのライフサイクル管理モジュール。

- config: 期間日数・リマインダー対象期間などの設定値
- schemas: Membership と API 用の Pydantic モデル
- repository: 永続化インターフェースと Supabase / インメモリ実装
- service: 作成・更新・更新(renew)・期限切れ判定のビジネスロジック
- router: /memberships エンドポイント
"""

from .config import MembershipSettings, get_membership_settings  # noqa: F401
from .schemas import (  # noqa: F401
    Membership,
    MembershipCreateRequest,
    MembershipStatus,
    MembershipType,
    MembershipUpdateRequest,
)
from .service import MembershipService  # noqa: F401
