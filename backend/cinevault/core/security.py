"""Bearer-token authentication for video owners.

Tokens are HS256 JWTs whose ``sub`` claim is the owning user's id; every
video endpoint resolves the caller through :func:`get_current_user_id`.
"""

from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from cinevault.config import get_settings
from cinevault.core.exceptions import AuthError

INVALID_TOKEN = "유효하지 않은 인증 토큰입니다"

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error=False so a missing header goes through AuthError like a bad token
bearer_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_prefix}/auth/login", auto_error=False
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, expires_in: timedelta | None = None) -> str:
    """Issue a token identifying ``user_id`` as the video owner."""
    lifetime = expires_in or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def read_user_id(token: str) -> int:
    """Return the owner id carried by ``token`` or raise AuthError."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise AuthError(INVALID_TOKEN)
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthError(INVALID_TOKEN)


async def get_current_user_id(token: str | None = Depends(bearer_scheme)) -> int:
    if not token:
        raise AuthError()
    return read_user_id(token)
