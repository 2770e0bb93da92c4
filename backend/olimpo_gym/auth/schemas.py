# backend/olimpo_gym/auth/schemas.py

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class CurrentUser(BaseModel):
    """リクエストを行ったユーザー。role は app_metadata.role と profiles.is_admin から決める。"""

    id: str
    email: Optional[str] = None
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
