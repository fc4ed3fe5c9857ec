# services/auth.py
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.user import User
from schemas.auth import LoginRequest, UserCreate
from services.currency_service import ensure_known_currency
from services.errors import (
    BaseCurrencyLocked,
    ConflictError,
    InvalidCredentials,
    InvalidToken,
)
from services.ledger_service import user_has_transactions
from services.pocket_service import create_default_pocket
from services.session_service import TokenPair, decode_access_token, issue_tokens
from services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False so a missing header goes through our envelope as AUTH-401
bearer_scheme = HTTPBearer(auto_error=False)

# ========================
# Password helpers
# ========================

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

# ========================
# User dependencies
# ========================

def _get_user_by_sub(db: Session, sub: str) -> User:
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise InvalidToken("Invalid token subject")
    user = db.get(User, user_id)
    if not user:
        raise InvalidToken("User no longer exists")
    return user

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise InvalidToken("Not authenticated")
    payload = decode_access_token(credentials.credentials)
    return _get_user_by_sub(db, payload["sub"])

# ========================
# Flows
# ========================

def register(db: Session, payload: UserCreate) -> tuple[User, TokenPair]:
    """User, Main pocket and first token pair commit together or not at all."""
    currency = ensure_known_currency(db, payload.base_currency or settings.DEFAULT_BASE_CURRENCY)

    taken = (
        db.query(User.id)
        .filter(or_(User.email == payload.email, User.username == payload.username))
        .first()
    )
    if taken:
        raise ConflictError("Username or email already registered")

    with unit_of_work(db):
        user = User(
            username=payload.username,
            email=payload.email,
            hashed_password=get_password_hash(payload.password),
            base_currency=currency,
        )
        db.add(user)
        try:
            db.flush()
        except IntegrityError:
            raise ConflictError("Username or email already registered")
        create_default_pocket(db, user.id)
        tokens = issue_tokens(db, user.id)

    logger.info("user_registered user_id=%s", user.id)
    return user, tokens

def authenticate(db: Session, payload: LoginRequest) -> User:
    login = (payload.login or "").strip()
    user = (
        db.query(User)
        .filter(or_(User.email == login.lower(), User.username == login))
        .first()
    )
    if not user or not verify_password(payload.password, user.hashed_password):
        raise InvalidCredentials()
    return user

def login(db: Session, payload: LoginRequest) -> tuple[User, TokenPair]:
    user = authenticate(db, payload)
    with unit_of_work(db):
        tokens = issue_tokens(db, user.id)
    logger.info("user_logged_in user_id=%s", user.id)
    return user, tokens

def update_base_currency(db: Session, user: User, currency_code: str) -> User:
    """
    Stored amounts are denominated in the base currency, so it can only
    change while the user has no transactions at all (tombstones included).
    """
    currency = ensure_known_currency(db, currency_code)
    if currency == user.base_currency:
        return user
    if user_has_transactions(db, user.id):
        raise BaseCurrencyLocked()
    with unit_of_work(db):
        user.base_currency = currency
        db.add(user)
    return user
