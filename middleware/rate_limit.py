"""
Rate limiting with slowapi.

Usage in route files:
    from middleware.rate_limit import limiter, AUTH_LIMIT

    @router.post("/login")
    @limiter.limit(AUTH_LIMIT)
    def login(request: Request, ...):
        ...
"""
import logging

from fastapi import Request
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import settings

logger = logging.getLogger(__name__)

AUTH_LIMIT = settings.RATE_LIMIT_AUTH


def _get_rate_limit_key(request: Request) -> str:
    """
    Bucket by user id when the request carries an access token, else by IP.

    The token is read without verification; it only picks the bucket.
    Authentication itself is enforced by the get_current_user dependency.
    """
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1].strip()
        try:
            sub = jwt.get_unverified_claims(token).get("sub")
        except JWTError:
            sub = None
        if sub:
            return f"user:{sub}"

    return get_remote_address(request)


limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.REDIS_URL or "memory://",
    strategy="fixed-window",
)
