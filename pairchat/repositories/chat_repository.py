from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from sqlalchemy.orm import selectinload

from pairchat.models.chat import Chat
from pairchat.models.chat_member import ChatMember

class ChatRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_direct_chat(self, creator_id: int, recipient_id: int) -> Chat:
        """Stage a room and both memberships; the caller owns the transaction."""
        low, high = Chat.pair_key(creator_id, recipient_id)
        chat = Chat(
            creator_id=creator_id,
            pair_low_id=low,
            pair_high_id=high
        )
        self.db.add(chat)
        await self.db.flush()

        chat.name = f"Chat Room {chat.id}"
        self.db.add_all([
            ChatMember(chat_id=chat.id, user_id=creator_id),
            ChatMember(chat_id=chat.id, user_id=recipient_id),
        ])
        await self.db.flush()
        return chat

    async def get_by_id(self, chat_id: int) -> Optional[Chat]:
        result = await self.db.execute(
            select(Chat).options(
                selectinload(Chat.members).selectinload(ChatMember.user)
            ).where(Chat.id == chat_id)
        )
        return result.scalar_one_or_none()

    async def exists(self, chat_id: int) -> bool:
        result = await self.db.execute(select(Chat.id).where(Chat.id == chat_id))
        return result.scalar_one_or_none() is not None

    async def get_user_chats(self, user_id: int) -> List[Chat]:
        result = await self.db.execute(
            select(Chat).join(ChatMember).options(
                selectinload(Chat.members).selectinload(ChatMember.user)
            ).where(ChatMember.user_id == user_id)
            .order_by(Chat.id.asc())
        )
        return list(result.scalars().all())

    async def get_direct_chat(self, user_id1: int, user_id2: int) -> Optional[Chat]:
        """Room whose member set is exactly {user_id1, user_id2}"""
        low, high = Chat.pair_key(user_id1, user_id2)
        result = await self.db.execute(
            select(Chat).where(
                and_(Chat.pair_low_id == low, Chat.pair_high_id == high)
            )
        )
        return result.scalar_one_or_none()

    async def is_member(self, chat_id: int, user_id: int) -> bool:
        result = await self.db.execute(
            select(ChatMember.id).where(
                and_(ChatMember.chat_id == chat_id, ChatMember.user_id == user_id)
            )
        )
        return result.scalar_one_or_none() is not None
