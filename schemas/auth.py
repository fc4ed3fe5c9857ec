from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,50}$")


class UserCreate(BaseModel):
    username: str
    email: str
    password: str
    base_currency: Optional[str] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        value = (value or "").strip()
        if not _USERNAME_RE.match(value):
            raise ValueError("username must be 3-50 letters, digits, '_', '.' or '-'")
        return value

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        value = (value or "").strip().lower()
        if len(value) > 100 or not _EMAIL_RE.match(value):
            raise ValueError("invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        # bcrypt only looks at the first 72 bytes
        if len(value or "") < 8 or len(value.encode("utf-8")) > 72:
            raise ValueError("password must be 8-72 bytes long")
        return value

    @field_validator("base_currency")
    @classmethod
    def validate_currency(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip().upper()


class LoginRequest(BaseModel):
    # username or email
    login: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    base_currency: str
    created_at: Optional[datetime] = None


class AuthOut(BaseModel):
    user: UserOut
    tokens: TokenOut


class CurrencyUpdate(BaseModel):
    currency_code: str

    @field_validator("currency_code")
    @classmethod
    def validate_currency(cls, value: str) -> str:
        value = (value or "").strip().upper()
        if len(value) != 3:
            raise ValueError("currency_code must be a 3-letter code")
        return value


class CurrencyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    symbol: Optional[str] = None
    name: Optional[str] = None
