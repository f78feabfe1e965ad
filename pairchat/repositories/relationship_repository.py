from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, exists

from pairchat.models.chat_member import ChatMember
from pairchat.models.message import Message
from pairchat.models.relationship import Relationship, RelationshipStatus
from pairchat.models.user import User

class RelationshipRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, owner_id: int, peer_id: int) -> Optional[Relationship]:
        result = await self.db.execute(
            select(Relationship).where(
                and_(Relationship.owner_id == owner_id, Relationship.peer_id == peer_id)
            )
        )
        return result.scalar_one_or_none()

    async def get_status(self, owner_id: int, peer_id: int) -> Optional[RelationshipStatus]:
        relationship = await self.get(owner_id, peer_id)
        return relationship.status if relationship else None

    async def add_if_absent(self, owner_id: int, peer_id: int, status: RelationshipStatus) -> Relationship:
        """Stage a row unless one exists already; the caller commits"""
        relationship = await self.get(owner_id, peer_id)
        if relationship is None:
            relationship = Relationship(owner_id=owner_id, peer_id=peer_id, status=status)
            self.db.add(relationship)
            await self.db.flush()
        return relationship

    async def set_status(self, owner_id: int, peer_id: int, status: RelationshipStatus) -> Optional[Relationship]:
        """
        Stage a move to ``status``.

        Returns None when the existing row cannot make that move; the caller
        commits.
        """
        relationship = await self.get(owner_id, peer_id)
        if relationship is None:
            relationship = Relationship(owner_id=owner_id, peer_id=peer_id, status=status)
            self.db.add(relationship)
        elif not relationship.can_move_to(status):
            return None
        else:
            relationship.status = status
        await self.db.flush()
        return relationship

    async def get_peers(self, owner_id: int, status: RelationshipStatus) -> List[User]:
        result = await self.db.execute(
            select(User)
            .join(Relationship, Relationship.peer_id == User.id)
            .where(
                and_(Relationship.owner_id == owner_id, Relationship.status == status)
            )
            .order_by(User.username.asc())
        )
        return list(result.scalars().all())

    async def get_pending_senders(self, user_id: int) -> List[User]:
        """Pending peers who already wrote into a room the user belongs to"""
        user_chats = select(ChatMember.chat_id).where(ChatMember.user_id == user_id)
        has_written = exists().where(
            and_(
                Message.sender_id == User.id,
                Message.chat_id.in_(user_chats)
            )
        )

        result = await self.db.execute(
            select(User)
            .join(Relationship, Relationship.peer_id == User.id)
            .where(
                and_(
                    Relationship.owner_id == user_id,
                    Relationship.status == RelationshipStatus.PENDING,
                    has_written
                )
            )
            .order_by(User.username.asc())
        )
        return list(result.scalars().all())
