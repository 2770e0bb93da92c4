# backend/olimpo_gym/memberships/router.py

"""
メンバーシップ用の FastAPI ルーター定義。

- 参照系のうち /memberships/user/{user_id} と /memberships/{id} は本人または管理者
- それ以外（作成・更新・削除・更新(renew)・バッチ実行）は管理者のみ
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from olimpo_gym.api.errors import internal_error, to_http_exception
from olimpo_gym.auth.dependencies import get_current_user, require_admin
from olimpo_gym.auth.schemas import CurrentUser
from olimpo_gym.errors import GymError
from olimpo_gym.utils.time import utc_now

from .config import get_membership_settings
from .factory import get_membership_service
from .schemas import (
    AutoRenewResult,
    ExpiringMembershipsResult,
    ExpirySweepResult,
    Membership,
    MembershipCreateRequest,
    MembershipUpdateRequest,
)
from .service import MembershipService

router = APIRouter(prefix="/memberships", tags=["memberships"])


def _ensure_owner_or_admin(user: CurrentUser, user_id: str) -> None:
    if not user.is_admin and user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your own memberships.",
        )


@router.post(
    "",
    response_model=Membership,
    status_code=status.HTTP_201_CREATED,
    summary="メンバーシップ作成",
    dependencies=[Depends(require_admin)],
)
def create_membership(
    body: MembershipCreateRequest,
    service: MembershipService = Depends(get_membership_service),
) -> Membership:
    try:
        return service.create(body)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to create membership.") from exc


@router.get(
    "",
    response_model=List[Membership],
    summary="メンバーシップ一覧",
    dependencies=[Depends(require_admin)],
)
def list_memberships(
    service: MembershipService = Depends(get_membership_service),
) -> List[Membership]:
    try:
        return service.list_all()
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to list memberships.") from exc


@router.get(
    "/user/{user_id}",
    response_model=List[Membership],
    summary="特定ユーザーのメンバーシップ",
)
def list_user_memberships(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
) -> List[Membership]:
    _ensure_owner_or_admin(user, user_id)
    try:
        return service.list_by_user(user_id)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to list user memberships.") from exc


@router.get(
    "/expiring",
    response_model=ExpiringMembershipsResult,
    summary="期限が近いメンバーシップ",
    dependencies=[Depends(require_admin)],
)
def list_expiring_memberships(
    date_from: Optional[datetime] = Query(None, alias="from", description="end_date の下限（既定: 現在時刻）"),
    date_to: Optional[datetime] = Query(None, alias="to", description="end_date の上限（既定: from + 7 日）"),
    notify: bool = Query(False, description="True の場合、対象会員へ予告メールを送る"),
    service: MembershipService = Depends(get_membership_service),
) -> ExpiringMembershipsResult:
    start = date_from or utc_now()
    end = date_to or start + timedelta(days=get_membership_settings().expiring_window_days)
    try:
        return service.find_expiring_memberships(start, end, notify=notify)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to find expiring memberships.") from exc


@router.post(
    "/check-expired",
    response_model=ExpirySweepResult,
    summary="期限切れ判定を即時実行",
    dependencies=[Depends(require_admin)],
)
def check_expired_memberships(
    service: MembershipService = Depends(get_membership_service),
) -> ExpirySweepResult:
    try:
        return service.check_expired_memberships()
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to check expired memberships.") from exc


@router.post(
    "/auto-renew",
    response_model=AutoRenewResult,
    summary="自動更新を即時実行",
    dependencies=[Depends(require_admin)],
)
def auto_renew_memberships(
    notify: bool = Query(True),
    service: MembershipService = Depends(get_membership_service),
) -> AutoRenewResult:
    try:
        return service.auto_renew_memberships(notify=notify)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to auto renew memberships.") from exc


@router.get("/{membership_id}", response_model=Membership, summary="メンバーシップ取得")
def get_membership(
    membership_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
) -> Membership:
    try:
        membership = service.get(membership_id)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to get membership.") from exc

    _ensure_owner_or_admin(user, membership.user_id)
    return membership


@router.patch(
    "/{membership_id}",
    response_model=Membership,
    summary="メンバーシップ更新",
    dependencies=[Depends(require_admin)],
)
def update_membership(
    membership_id: str,
    body: MembershipUpdateRequest,
    service: MembershipService = Depends(get_membership_service),
) -> Membership:
    try:
        return service.update(membership_id, body)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to update membership.") from exc


@router.delete(
    "/{membership_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="メンバーシップ削除",
    dependencies=[Depends(require_admin)],
)
def delete_membership(
    membership_id: str,
    service: MembershipService = Depends(get_membership_service),
) -> Response:
    try:
        service.remove(membership_id)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to delete membership.") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{membership_id}/renew",
    response_model=Membership,
    summary="メンバーシップを更新（期間をリセット）",
    dependencies=[Depends(require_admin)],
)
def renew_membership(
    membership_id: str,
    notify: bool = Query(False, description="True の場合、更新完了メールを送る"),
    service: MembershipService = Depends(get_membership_service),
) -> Membership:
    try:
        return service.renew_membership(membership_id, notify=notify)
    except GymError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # noqa: BLE001
        raise internal_error(exc, "Failed to renew membership.") from exc
