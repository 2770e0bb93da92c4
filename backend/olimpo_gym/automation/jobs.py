# backend/olimpo_gym/automation/jobs.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from olimpo_gym.memberships.config import get_membership_settings
from olimpo_gym.memberships.factory import get_membership_service
from olimpo_gym.memberships.schemas import (
    AutoRenewResult,
    ExpiringMembershipsResult,
    ExpirySweepResult,
)
from olimpo_gym.memberships.service import MembershipService
from olimpo_gym.utils.logging import configure_logging
from olimpo_gym.utils.time import ensure_utc

logger = logging.getLogger(__name__)


def run_check_expired_memberships(
    *,
    service: Optional[MembershipService] = None,
    now: Optional[datetime] = None,
) -> ExpirySweepResult:
    """
    期限切れ判定ジョブ（毎日 08:00 想定）。

    ACTIVE かつ end_date < now のメンバーシップを EXPIRED にする。
    """
    service = service or get_membership_service()
    now_norm = ensure_utc(now)

    result = service.check_expired_memberships(now_norm)
    logger.info("Expired memberships: %s/%s", len(result.expired_ids), result.checked)
    return result


def run_auto_renew_memberships(
    *,
    service: Optional[MembershipService] = None,
    now: Optional[datetime] = None,
    notify: bool = True,
) -> AutoRenewResult:
    """
    自動更新ジョブ（毎日 00:00 想定）。
    """
    service = service or get_membership_service()
    now_norm = ensure_utc(now)

    result = service.auto_renew_memberships(now_norm, notify=notify)
    logger.info("Auto renewed memberships: %s/%s", len(result.renewed_ids), result.checked)
    return result


def run_notify_expiring_memberships(
    *,
    service: Optional[MembershipService] = None,
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
) -> ExpiringMembershipsResult:
    """
    期限間近リマインダージョブ（毎週月曜 10:00 想定）。

    [now, now + window_days] に end_date があるメンバーへ予告メールを送る。
    """
    service = service or get_membership_service()
    now_norm = ensure_utc(now)
    if window_days is None:
        window_days = get_membership_settings().expiring_window_days

    result = service.find_expiring_memberships(
        now_norm,
        now_norm + timedelta(days=window_days),
        notify=True,
    )
    logger.info(
        "Expiring memberships: count=%s notified=%s failures=%s",
        result.count,
        result.notified,
        result.notification_failures,
    )
    return result


def main() -> None:
    """
    簡易 CLI エントリーポイント。

    例:
        python -m olimpo_gym.automation.jobs expire
        python -m olimpo_gym.automation.jobs auto-renew
        python -m olimpo_gym.automation.jobs notify-expiring

    cron から呼び出す想定（プロセス内スケジューラを使わない場合）。
    """
    import argparse

    parser = argparse.ArgumentParser(description="Olimpo Gym membership jobs runner")
    parser.add_argument(
        "job",
        choices=["expire", "auto-renew", "notify-expiring"],
        help="実行するジョブ種別",
    )
    parser.add_argument(
        "--no-notify",
        action="store_true",
        help="auto-renew で更新完了メールを送らない",
    )
    args = parser.parse_args()

    configure_logging()

    if args.job == "expire":
        run_check_expired_memberships()
    elif args.job == "auto-renew":
        run_auto_renew_memberships(notify=not args.no_notify)
    elif args.job == "notify-expiring":
        run_notify_expiring_memberships()


if __name__ == "__main__":
    main()
