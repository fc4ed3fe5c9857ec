# routers/auth_routes.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from middleware.rate_limit import AUTH_LIMIT, limiter
from models.user import User
from schemas.auth import AuthOut, LoginRequest, RefreshRequest, TokenOut, UserCreate, UserOut
from schemas.general import ApiResponse
from services import auth as auth_service
from services.auth import get_current_user
from services.session_service import refresh_tokens, revoke_token

router = APIRouter()


def _auth_out(user: User, tokens) -> AuthOut:
    return AuthOut(user=UserOut.model_validate(user), tokens=TokenOut.model_validate(tokens))


@router.post("/register", response_model=ApiResponse[AuthOut], status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
def register(request: Request, payload: UserCreate, db: Session = Depends(get_db)):
    user, tokens = auth_service.register(db, payload)
    return ApiResponse(data=_auth_out(user, tokens), message="Account created")


@router.post("/login", response_model=ApiResponse[AuthOut])
@limiter.limit(AUTH_LIMIT)
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    user, tokens = auth_service.login(db, payload)
    return ApiResponse(data=_auth_out(user, tokens))


@router.post("/refresh", response_model=ApiResponse[TokenOut])
@limiter.limit(AUTH_LIMIT)
def refresh(request: Request, payload: RefreshRequest, db: Session = Depends(get_db)):
    tokens = refresh_tokens(db, payload.refresh_token)
    return ApiResponse(data=TokenOut.model_validate(tokens))


@router.post("/logout", response_model=ApiResponse[None])
def logout(payload: RefreshRequest, db: Session = Depends(get_db)):
    revoke_token(db, payload.refresh_token)
    return ApiResponse(data=None, message="Logged out")


@router.get("/profile", response_model=ApiResponse[UserOut])
def profile(user: User = Depends(get_current_user)):
    return ApiResponse(data=UserOut.model_validate(user))
