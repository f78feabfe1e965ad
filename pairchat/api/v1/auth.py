from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from pairchat.database import get_db
from pairchat.repositories.user_repository import UserRepository
from pairchat.schemas.user import UserCreate, UserResponse, Token, UserLogin, PasswordReset, PasswordResetRequest
from pairchat.auth import (
    RESET_TOKEN_PURPOSE,
    authenticate_user,
    create_access_token,
    get_current_active_user,
    issue_token,
    verify_token,
)
from pairchat.config import settings
from pairchat.exceptions import AuthenticationError, ValidationError
from pairchat.models.user import User

router = APIRouter()


def token_response(user: User) -> dict:
    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = issue_token(user.id, user.username, expires)
    return {"access_token": token, "token_type": "bearer", "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60}

@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    user_repo = UserRepository(db)

    if await user_repo.exists_by_username_or_email(user_data.username, user_data.email):
        raise HTTPException(status_code=400, detail="User already exists")

    return await user_repo.create(user_data)

@router.post("/login", response_model=Token)
async def login_user(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return token_response(user)

@router.post("/login-json", response_model=Token)
async def login_user_json(user_data: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, user_data.username, user_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return token_response(user)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_active_user)):
    return current_user

@router.post("/refresh", response_model=Token)
async def refresh_token(current_user: User = Depends(get_current_active_user)):
    return token_response(current_user)

@router.post("/reset-password")
async def request_password_reset(
    reset_data: PasswordResetRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Send a reset link; the answer is the same whether or not the email is known"""
    user = await UserRepository(db).get_by_email(reset_data.email)
    if user:
        token = create_access_token(
            {"sub": user.username, "uid": user.id},
            timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
            purpose=RESET_TOKEN_PURPOSE
        )
        request.app.state.mailer.send_password_reset(user.email, token)

    return {"message": "If the address is registered, a reset link has been sent"}

@router.post("/reset-password/{token}")
async def reset_password(token: str, reset_data: PasswordReset, db: AsyncSession = Depends(get_db)):
    try:
        claims = verify_token(token, purpose=RESET_TOKEN_PURPOSE)
    except AuthenticationError as exc:
        raise ValidationError("Invalid or expired token") from exc

    user_repo = UserRepository(db)
    user = await user_repo.get_by_id(claims.user_id)
    if user is None or user.username != claims.username:
        raise ValidationError("Invalid or expired token")

    await user_repo.set_password(user, reset_data.password)
    return {"message": "Password has been reset"}
