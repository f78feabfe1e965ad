from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, case

from pairchat.models.user import User
from pairchat.schemas.user import UserCreate, UserUpdate
from pairchat.auth import get_password_hash

class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_data: UserCreate) -> User:
        db_user = User(
            username=user_data.username,
            email=user_data.email,
            name=user_data.name,
            surname=user_data.surname,
            hashed_password=get_password_hash(user_data.password)
        )
        self.db.add(db_user)
        await self.db.commit()
        await self.db.refresh(db_user)
        return db_user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def update(self, user_id: int, user_data: UserUpdate) -> Optional[User]:
        db_user = await self.get_by_id(user_id)
        if not db_user:
            return None

        for field, value in user_data.model_dump(exclude_unset=True).items():
            setattr(db_user, field, value)

        await self.db.commit()
        await self.db.refresh(db_user)
        return db_user

    async def set_password(self, db_user: User, password: str) -> User:
        db_user.hashed_password = get_password_hash(password)
        await self.db.commit()
        return db_user

    async def search(self, text: str, exclude_user_id: int, limit: int = 50) -> List[User]:
        """Username prefix or substring match, prefix matches first."""
        needle = text.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        result = await self.db.execute(
            select(User)
            .where(
                User.id != exclude_user_id,
                User.is_active.is_(True),
                User.username.ilike(f"%{needle}%", escape="\\")
            )
            .order_by(
                case((User.username.ilike(f"{needle}%", escape="\\"), 0), else_=1),
                User.username.asc()
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def exists_by_username_or_email(self, username: str, email: str) -> bool:
        result = await self.db.execute(
            select(User.id).where(
                or_(User.username == username, User.email == email)
            ).limit(1)
        )
        return result.first() is not None
