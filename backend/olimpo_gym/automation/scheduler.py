# backend/olimpo_gym/automation/scheduler.py

"""
APScheduler によるプロセス内スケジューラ。

- 期限切れ判定: 毎日 08:00
- 自動更新: 毎日 00:00
- 期限間近リマインダー: 毎週月曜 10:00

各ジョブは例外をログに残して握りつぶす（スケジューラ自体は止めない）。
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .jobs import (
    run_auto_renew_memberships,
    run_check_expired_memberships,
    run_notify_expiring_memberships,
)

logger = logging.getLogger(__name__)


def _guarded(name: str, job: Callable[[], object]) -> Callable[[], None]:
    def runner() -> None:
        logger.info("Scheduled job %s started.", name)
        try:
            job()
        except Exception:  # noqa: BLE001 - 次回の実行を止めない
            logger.exception("Scheduled job %s failed.", name)
            return
        logger.info("Scheduled job %s finished.", name)

    return runner


class MembershipScheduler:
    """メンバーシップ関連ジョブを登録した BackgroundScheduler のラッパー。"""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._configured = False

    def configure(self) -> None:
        if self._configured:
            return
        self.scheduler.add_job(
            _guarded("check_expired_memberships", run_check_expired_memberships),
            CronTrigger(hour=8, minute=0),
            id="check_expired_memberships",
            name="Membership expiry check",
            replace_existing=True,
        )
        self.scheduler.add_job(
            _guarded("auto_renew_memberships", run_auto_renew_memberships),
            CronTrigger(hour=0, minute=0),
            id="auto_renew_memberships",
            name="Membership auto renew",
            replace_existing=True,
        )
        self.scheduler.add_job(
            _guarded("notify_expiring_memberships", run_notify_expiring_memberships),
            CronTrigger(day_of_week="mon", hour=10, minute=0),
            id="notify_expiring_memberships",
            name="Expiring memberships reminder",
            replace_existing=True,
        )
        self._configured = True

    def start(self) -> None:
        self.configure()
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Membership scheduler started.")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Membership scheduler stopped.")


_scheduler: Optional[MembershipScheduler] = None


def get_scheduler() -> MembershipScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = MembershipScheduler()
    return _scheduler


def reset_scheduler() -> None:
    """テスト用にシングルトン状態をリセットする。"""
    global _scheduler
    if _scheduler is not None:
        _scheduler.stop()
    _scheduler = None
