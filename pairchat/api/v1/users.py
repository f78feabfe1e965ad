from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pairchat.database import get_db
from pairchat.repositories.user_repository import UserRepository
from pairchat.schemas.user import UserResponse, UserSummary, UserUpdate
from pairchat.auth import get_current_active_user
from pairchat.models.user import User

router = APIRouter()

@router.get("/search", response_model=List[UserSummary])
async def search_users(
    q: str = Query(..., min_length=1, description="Part of a username"),
    limit: int = Query(50, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Search other users by username prefix or substring"""
    user_repo = UserRepository(db)
    return await user_repo.search(q, exclude_user_id=current_user.id, limit=limit)

@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    current_user: User = Depends(get_current_active_user)
):
    return current_user

@router.put("/me", response_model=UserResponse)
async def update_current_user(
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Update profile fields; avatar is a URI produced by the upload service"""
    user_repo = UserRepository(db)

    if user_data.username and user_data.username != current_user.username:
        if await user_repo.get_by_username(user_data.username):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username is already taken"
            )

    if user_data.email and user_data.email != current_user.email:
        if await user_repo.get_by_email(user_data.email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email is already registered"
            )

    return await user_repo.update(current_user.id, user_data)

@router.get("/{user_id}", response_model=UserResponse)
async def get_user_by_id(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    user_repo = UserRepository(db)
    user = await user_repo.get_by_id(user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user
