# services/session_service.py
"""
Access and refresh tokens.

Access tokens are short-lived HS256 JWTs (python-jose) carrying the user
id in `sub`. Refresh tokens are opaque random strings; only their SHA-256
hex digest is stored. Each login starts a token family, and every refresh
rotates the presented token into a successor of the same family. A
rotated or revoked token that shows up again means the chain leaked, so
the whole family is revoked.
"""
from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import update
from sqlalchemy.orm import Session

from config import settings
from models.refresh_token import RefreshToken, TokenState
from services.errors import InvalidToken, TokenExpired, TokenReuseDetected
from services.unit_of_work import unit_of_work
from utils.common_helpers import ensure_utc, utc_now

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


# ========================
# JWT helpers
# ========================

def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    now = utc_now()
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": str(user_id),
        "typ": ACCESS_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode & verify an access JWT. Raises TokenExpired / InvalidToken."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired("Access token expired")
    except JWTError:
        raise InvalidToken()
    if payload.get("typ") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        raise InvalidToken("Invalid token payload")
    return payload


# ========================
# Refresh token helpers
# ========================

def hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def generate_refresh_token() -> str:
    # 64 hex chars, 256 bits of randomness
    return uuid.uuid4().hex + uuid.uuid4().hex


def token_state(row: RefreshToken, now: Optional[datetime] = None) -> TokenState:
    now = now or utc_now()
    if row.state != TokenState.ACTIVE.value:
        return TokenState(row.state)
    if ensure_utc(row.expires_at) <= now:
        return TokenState.EXPIRED
    return TokenState.ACTIVE


def _stage_refresh_token(db: Session, user_id: int, family_id: str, raw: str) -> RefreshToken:
    row = RefreshToken(
        user_id=user_id,
        family_id=family_id,
        token_hash=hash_token(raw),
        state=TokenState.ACTIVE.value,
        expires_at=utc_now() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    db.add(row)
    db.flush()
    return row


def _pair(user_id: int, raw_refresh: str) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user_id),
        refresh_token=raw_refresh,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def _find(db: Session, raw: str) -> RefreshToken:
    row = db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(raw or "")).first()
    if not row:
        raise InvalidToken()
    return row


def _revoke_family(db: Session, family_id: str) -> int:
    res = db.execute(
        update(RefreshToken)
        .where(RefreshToken.family_id == family_id, RefreshToken.state == TokenState.ACTIVE.value)
        .values(state=TokenState.REVOKED.value)
    )
    return res.rowcount or 0


def _reject_reuse(db: Session, row: RefreshToken) -> None:
    with unit_of_work(db):
        revoked = _revoke_family(db, row.family_id)
    logger.warning("refresh_token_reuse user_id=%s revoked=%d", row.user_id, revoked)
    raise TokenReuseDetected()


# ========================
# Operations
# ========================

def issue_tokens(db: Session, user_id: int, *, family_id: Optional[str] = None) -> TokenPair:
    """
    Stage a fresh refresh token and sign an access token.

    Only flushes: signup and login wrap this in their own unit of work so the
    token commits together with whatever else they write.
    """
    raw = generate_refresh_token()
    _stage_refresh_token(db, user_id, family_id or str(uuid.uuid4()), raw)
    return _pair(user_id, raw)


def refresh_tokens(db: Session, raw: str) -> TokenPair:
    row = _find(db, raw)
    state = token_state(row)
    if state in (TokenState.ROTATED, TokenState.REVOKED):
        _reject_reuse(db, row)
    if state == TokenState.EXPIRED:
        raise TokenExpired("Refresh token expired")

    successor = generate_refresh_token()
    rotated = False
    with unit_of_work(db):
        # only one concurrent refresh can flip active -> rotated
        res = db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == row.id, RefreshToken.state == TokenState.ACTIVE.value)
            .values(state=TokenState.ROTATED.value, replaced_by=hash_token(successor))
        )
        if res.rowcount == 1:
            _stage_refresh_token(db, row.user_id, row.family_id, successor)
            rotated = True

    if not rotated:
        _reject_reuse(db, row)

    return _pair(row.user_id, successor)


def revoke_token(db: Session, raw: str) -> int:
    """Logout: every still-active token of the presented token's family is revoked."""
    row = _find(db, raw)
    with unit_of_work(db):
        revoked = _revoke_family(db, row.family_id)
    logger.info("refresh_family_revoked user_id=%s revoked=%d", row.user_id, revoked)
    return revoked
