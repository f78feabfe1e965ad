from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pairchat.config import settings
from pairchat.database import get_db
from pairchat.exceptions import AuthenticationError
from pairchat.models.user import User


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

ACCESS_TOKEN_PURPOSE = "access"
RESET_TOKEN_PURPOSE = "reset"


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    username: str


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, purpose: str = ACCESS_TOKEN_PURPOSE) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "purpose": purpose})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def issue_token(user_id: int, username: str, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token({"sub": username, "uid": user_id}, expires_delta)


def verify_token(token: Optional[str], purpose: str = ACCESS_TOKEN_PURPOSE) -> TokenClaims:
    """Decode a token into its claims or raise AuthenticationError."""
    if not token:
        raise AuthenticationError("Token required")
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid token")

    username = payload.get("sub")
    user_id = payload.get("uid")
    if username is None or user_id is None or payload.get("purpose") != purpose:
        raise AuthenticationError("Invalid token")
    return TokenClaims(user_id=int(user_id), username=username)


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def authenticate_user(db: AsyncSession, username: str, password: str) -> Optional[User]:
    user = await get_user_by_username(db, username)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


async def get_user_from_token(token: Optional[str], db: AsyncSession) -> User:
    claims = verify_token(token)
    result = await db.execute(select(User).where(User.id == claims.user_id))
    user = result.scalar_one_or_none()
    if user is None or user.username != claims.username:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Inactive user")
    return user


async def get_current_active_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    return await get_user_from_token(token, db)
