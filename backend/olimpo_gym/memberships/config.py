# backend/olimpo_gym/memberships/config.py

from dataclasses import dataclass
from functools import lru_cache

from olimpo_gym.utils.config import get_env_int


@dataclass(frozen=True)
class MembershipSettings:
    """
    メンバーシップ運用に関する設定値。

    NOTE:
    - period_days はプラン種別に関係なく一律（暦月ではなく固定日数）。
    """

    period_days: int = 30
    expiring_window_days: int = 7


@lru_cache()
def get_membership_settings() -> MembershipSettings:
    """
    MembershipSettings を環境変数から構築する。

    任意:
      - MEMBERSHIP_PERIOD_DAYS（デフォルト 30日）
      - MEMBERSHIP_EXPIRING_WINDOW_DAYS（デフォルト 7日）
    """
    period_days = get_env_int("MEMBERSHIP_PERIOD_DAYS", default=30)
    expiring_window_days = get_env_int("MEMBERSHIP_EXPIRING_WINDOW_DAYS", default=7)

    if period_days <= 0:
        raise RuntimeError("MEMBERSHIP_PERIOD_DAYS must be greater than 0")
    if expiring_window_days < 0:
        raise RuntimeError("MEMBERSHIP_EXPIRING_WINDOW_DAYS must not be negative")

    return MembershipSettings(
        period_days=period_days,
        expiring_window_days=expiring_window_days,
    )
