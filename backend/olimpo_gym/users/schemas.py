# backend/olimpo_gym/users/schemas.py

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class UserProfile(BaseModel):
    """
    profiles テーブル 1 行分。id は auth.users.id と同じ値。
    """

    id: str = Field(..., description="Supabase Auth のユーザー ID")
    email: Optional[str] = Field(None, description="通知先メールアドレス")
    first_name: Optional[str] = Field(None, description="名")
    last_name: Optional[str] = Field(None, description="姓")
    full_name: Optional[str] = Field(None, description="表示名。first_name / last_name が無い行向け")
    phone: Optional[str] = Field(None, description="WhatsApp 通知先の電話番号")
    is_admin: Optional[bool] = Field(False, description="管理者フラグ（NULL は一般会員扱い）")

    @property
    def display_name(self) -> str:
        """通知本文の {{name}}。名・姓 → full_name → メールのローカル部 → "socio" の順。"""
        parts = [part.strip() for part in (self.first_name, self.last_name) if part and part.strip()]
        if parts:
            return " ".join(parts)
        if self.full_name:
            return self.full_name
        if self.email:
            return self.email.split("@", 1)[0]
        return "socio"
