# backend/olimpo_gym/auth/dependencies.py

"""
FastAPI の依存関数。

- 管理者判定は app_metadata.role または profiles.is_admin
- テスト時は dependency_overrides で get_current_user / get_user_repository を差し替える
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from olimpo_gym.api.errors import to_http_exception
from olimpo_gym.db.state import get_supabase_client
from olimpo_gym.errors import GymError, PermissionDeniedError
from olimpo_gym.users.repository import SupabaseUserRepository, UserRepository

from .client import SupabaseAuthClient
from .schemas import CurrentUser, Role

_bearer = HTTPBearer(auto_error=False)


@lru_cache()
def get_auth_client() -> SupabaseAuthClient:
    return SupabaseAuthClient()


def get_user_repository() -> UserRepository:
    return SupabaseUserRepository(get_supabase_client())


def _with_profile_role(user: CurrentUser, users: UserRepository) -> CurrentUser:
    """profiles.is_admin が立っていれば ADMIN に昇格させる。"""
    if user.is_admin:
        return user
    profile = users.get(user.id)
    if profile is not None and profile.is_admin:
        return user.model_copy(update={"role": Role.ADMIN})
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    users: UserRepository = Depends(get_user_repository),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = auth_client.get_user(credentials.credentials)
        return _with_profile_role(user, users)
    except GymError as exc:
        raise to_http_exception(exc) from exc


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise to_http_exception(PermissionDeniedError("Administrator role required."))
    return user
