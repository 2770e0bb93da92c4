# backend/olimpo_gym/memberships/service.py

"""
メンバーシップのライフサイクルを扱うサービス層。

責務:
- 作成時の終了日計算（プラン種別に関係なく開始日 + period_days）
- KICKBOXING の days_per_week 必須チェック
- 期限切れ判定（ACTIVE かつ end_date < now → EXPIRED）
- 更新(renew): 開始日 = now, 終了日 = now + period_days, status = ACTIVE
- 期限間近のメンバーシップ抽出とリマインダー送信、自動更新

バッチ処理は 1 件ずつ順番に更新する。途中で失敗した分はログに残して次へ進む
（トランザクションなし・at-least-once）。
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from olimpo_gym.errors import NotFoundError, RepositoryError, ValidationError
from olimpo_gym.notifications.schemas import SendOptions
from olimpo_gym.notifications.service import NotificationService
from olimpo_gym.users.repository import UserRepository
from olimpo_gym.utils.time import ensure_utc, utc_now

from .config import MembershipSettings, get_membership_settings
from .repository import MembershipRepository
from .schemas import (
    AutoRenewResult,
    ExpiringMembershipsResult,
    ExpirySweepResult,
    Membership,
    MembershipCreateRequest,
    MembershipStatus,
    MembershipType,
    MembershipUpdateRequest,
)

logger = logging.getLogger(__name__)


def _persistence_error(action: str, exc: RepositoryError) -> RepositoryError:
    """永続化エラーを、元のメッセージを保持したままサービス層のエラーにする。"""
    return RepositoryError(
        f"Failed to {action}: {exc.message}",
        status_code=exc.status_code,
        detail=exc.detail,
    )


class MembershipService:
    """
    メンバーシップの作成・参照・更新・期限管理をまとめるサービス。

    - notification_service / user_repository が無い場合、通知は送らずにログだけ残す
    """

    def __init__(
        self,
        repository: MembershipRepository,
        *,
        settings: MembershipSettings | None = None,
        notification_service: Optional[NotificationService] = None,
        user_repository: Optional[UserRepository] = None,
    ) -> None:
        self._repository = repository
        self._settings = settings or get_membership_settings()
        self._notifications = notification_service
        self._users = user_repository

    # ---- 内部ヘルパー -------------------------------------------------

    def _now(self) -> datetime:
        """テストしやすさのために現在時刻取得をメソッド化。"""
        return utc_now()

    def _period(self) -> timedelta:
        return timedelta(days=self._settings.period_days)

    @staticmethod
    def _validate_rules(
        type_: MembershipType,
        days_per_week: Optional[int],
        start_date: datetime,
        end_date: datetime,
    ) -> None:
        if type_ == MembershipType.KICKBOXING and not days_per_week:
            raise ValidationError("days_per_week is required for KICKBOXING memberships.")
        if end_date <= start_date:
            raise ValidationError("end_date must be after start_date.")

    # ---- CRUD ---------------------------------------------------------

    def create(
        self,
        request: MembershipCreateRequest,
        *,
        now: Optional[datetime] = None,
    ) -> Membership:
        """
        メンバーシップを作成する。status は常に ACTIVE で始まる。
        """
        current = ensure_utc(now) if now is not None else self._now()
        start_date = ensure_utc(request.start_date) if request.start_date else current
        end_date = start_date + self._period()

        self._validate_rules(request.type, request.days_per_week, start_date, end_date)

        try:
            membership = self._repository.insert(
                {
                    "user_id": request.user_id,
                    "type": request.type,
                    "status": MembershipStatus.ACTIVE,
                    "start_date": start_date,
                    "end_date": end_date,
                    "days_per_week": request.days_per_week,
                    "price": request.price,
                    "auto_renew": request.auto_renew,
                    "created_at": current,
                    "updated_at": current,
                }
            )
        except RepositoryError as exc:
            raise _persistence_error("create membership", exc) from exc

        logger.info("Membership %s created for user %s (%s).", membership.id, membership.user_id, membership.type.value)
        return membership

    def list_all(self) -> List[Membership]:
        try:
            return self._repository.list()
        except RepositoryError as exc:
            raise _persistence_error("list memberships", exc) from exc

    def get(self, membership_id: str) -> Membership:
        try:
            membership = self._repository.get(membership_id)
        except RepositoryError as exc:
            raise _persistence_error("get membership", exc) from exc
        if membership is None:
            raise NotFoundError(f"Membership not found: {membership_id}")
        return membership

    def list_by_user(self, user_id: str) -> List[Membership]:
        try:
            return self._repository.list(user_id=user_id)
        except RepositoryError as exc:
            raise _persistence_error("list user memberships", exc) from exc

    def update(self, membership_id: str, request: MembershipUpdateRequest) -> Membership:
        """
        指定された項目だけを更新する。更新後のレコードで業務ルールを再検証する。
        """
        current = self.get(membership_id)

        changes: Dict[str, Any] = request.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationError("No fields to update.")
        for key in ("start_date", "end_date"):
            if key in changes:
                changes[key] = ensure_utc(changes[key])

        merged = current.model_copy(update=changes)
        self._validate_rules(merged.type, merged.days_per_week, merged.start_date, merged.end_date)

        changes["updated_at"] = self._now()
        try:
            updated = self._repository.update(membership_id, changes)
        except RepositoryError as exc:
            raise _persistence_error("update membership", exc) from exc
        if updated is None:
            raise NotFoundError(f"Membership not found: {membership_id}")
        return updated

    def remove(self, membership_id: str) -> None:
        """管理者による明示的な削除のみ。"""
        self.get(membership_id)
        try:
            deleted = self._repository.delete(membership_id)
        except RepositoryError as exc:
            raise _persistence_error("delete membership", exc) from exc
        if not deleted:
            raise NotFoundError(f"Membership not found: {membership_id}")
        logger.info("Membership %s deleted.", membership_id)

    # ---- ライフサイクル -----------------------------------------------

    def check_expired_memberships(self, now: Optional[datetime] = None) -> ExpirySweepResult:
        """
        ACTIVE かつ end_date < now のメンバーシップを EXPIRED にする。

        1 件の更新失敗はログに残して残りを続ける。通知はここでは送らない。
        取得後に renew 等で期限内に戻った行は上書きしない。
        """
        current = ensure_utc(now) if now is not None else self._now()

        try:
            candidates = self._repository.list_active_ending_before(current)
        except RepositoryError as exc:
            raise _persistence_error("check expired memberships", exc) from exc

        expired_ids: List[str] = []
        failed_ids: List[str] = []
        for membership in candidates:
            try:
                updated = self._repository.update(
                    membership.id,
                    {"status": MembershipStatus.EXPIRED, "updated_at": current},
                    expected_status=MembershipStatus.ACTIVE,
                    ending_before=current,
                )
            except RepositoryError as exc:
                logger.error("Failed to expire membership %s: %s", membership.id, exc.message)
                failed_ids.append(membership.id)
                continue
            if updated is None:
                # 取得後に更新・削除された
                logger.info("Membership %s changed since it was selected; skipped by expiry sweep.", membership.id)
                continue
            expired_ids.append(membership.id)

        logger.info(
            "Expiry sweep finished: checked=%s expired=%s failed=%s",
            len(candidates),
            len(expired_ids),
            len(failed_ids),
        )
        return ExpirySweepResult(
            checked=len(candidates),
            expired_ids=expired_ids,
            failed_ids=failed_ids,
        )

    def find_expiring_memberships(
        self,
        date_from: datetime,
        date_to: datetime,
        notify: bool = False,
    ) -> ExpiringMembershipsResult:
        """
        end_date が [date_from, date_to] に入る ACTIVE のメンバーシップを返す。

        notify=True の場合、会員ごとに期限切れ予告メールを送る。
        """
        start = ensure_utc(date_from)
        end = ensure_utc(date_to)
        if end < start:
            raise ValidationError("date_to must not be before date_from.")

        try:
            memberships = self._repository.list_active_ending_between(start, end)
        except RepositoryError as exc:
            raise _persistence_error("find expiring memberships", exc) from exc

        notified = 0
        failures = 0
        if notify:
            for membership in memberships:
                if self._notify_expiration(membership):
                    notified += 1
                else:
                    failures += 1

        return ExpiringMembershipsResult(
            memberships=memberships,
            count=len(memberships),
            notified=notified,
            notification_failures=failures,
        )

    def renew_membership(
        self,
        membership_id: str,
        *,
        notify: bool = False,
        now: Optional[datetime] = None,
    ) -> Membership:
        """
        メンバーシップを更新する。以前の状態に関係なく ACTIVE になる。

        新しい期間は now から period_days（暦月計算・日割りはしない）。
        """
        self.get(membership_id)

        start_date = ensure_utc(now) if now is not None else self._now()
        end_date = start_date + self._period()

        try:
            renewed = self._repository.update(
                membership_id,
                {
                    "status": MembershipStatus.ACTIVE,
                    "start_date": start_date,
                    "end_date": end_date,
                    "updated_at": start_date,
                },
            )
        except RepositoryError as exc:
            raise _persistence_error("renew membership", exc) from exc
        if renewed is None:
            raise NotFoundError(f"Membership not found: {membership_id}")

        logger.info("Membership %s renewed until %s.", membership_id, end_date.isoformat())
        if notify:
            self._notify_renewal(renewed)
        return renewed

    def auto_renew_memberships(
        self,
        now: Optional[datetime] = None,
        *,
        notify: bool = True,
    ) -> AutoRenewResult:
        """
        auto_renew=True で end_date < now のメンバーシップ（ACTIVE / EXPIRED）を更新する。
        """
        current = ensure_utc(now) if now is not None else self._now()

        try:
            candidates = self._repository.list_auto_renew_due(current)
        except RepositoryError as exc:
            raise _persistence_error("auto renew memberships", exc) from exc

        renewed_ids: List[str] = []
        failed_ids: List[str] = []
        for membership in candidates:
            try:
                self.renew_membership(membership.id, notify=notify, now=current)
            except (RepositoryError, NotFoundError) as exc:
                logger.error("Failed to auto renew membership %s: %s", membership.id, exc.message)
                failed_ids.append(membership.id)
                continue
            renewed_ids.append(membership.id)

        logger.info(
            "Auto renew finished: checked=%s renewed=%s failed=%s",
            len(candidates),
            len(renewed_ids),
            len(failed_ids),
        )
        return AutoRenewResult(
            checked=len(candidates),
            renewed_ids=renewed_ids,
            failed_ids=failed_ids,
        )

    # ---- 通知 ---------------------------------------------------------

    def _resolve_recipient(self, membership: Membership):
        """会員のプロフィールを引く。送れない場合は None。"""
        if self._notifications is None or self._users is None:
            logger.warning("Notification dependencies not configured; skipping membership %s.", membership.id)
            return None

        try:
            profile = self._users.get(membership.user_id)
        except RepositoryError as exc:
            logger.error("Failed to load user %s: %s", membership.user_id, exc.message)
            return None

        if profile is None or not profile.email:
            logger.warning("User %s has no email; skipping membership %s.", membership.user_id, membership.id)
            return None
        return profile

    def _notify_expiration(self, membership: Membership) -> bool:
        profile = self._resolve_recipient(membership)
        if profile is None:
            return False
        try:
            return self._notifications.send_membership_expiration_notification(
                profile.email,
                profile.display_name,
                membership.end_date,
                membership.type.value,
                SendOptions(user_id=membership.user_id, membership_id=membership.id),
            )
        except Exception:  # noqa: BLE001 - 通知はバッチ処理を止めない
            logger.exception("Expiration notice for membership %s could not be recorded.", membership.id)
            return False

    def _notify_renewal(self, membership: Membership) -> bool:
        profile = self._resolve_recipient(membership)
        if profile is None:
            return False
        try:
            return self._notifications.send_membership_renewal_notification(
                profile.email,
                profile.display_name,
                membership.end_date,
                membership.type.value,
                SendOptions(user_id=membership.user_id, membership_id=membership.id),
            )
        except Exception:  # noqa: BLE001 - 通知失敗で更新結果を失わない
            logger.exception("Renewal notice for membership %s could not be recorded.", membership.id)
            return False
