from typing import Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, func

from pairchat.models.chat_member import ChatMember
from pairchat.models.message import Message

class MessageRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, chat_id: int, sender_id: int, text: str) -> Message:
        message = Message(
            chat_id=chat_id,
            sender_id=sender_id,
            text=text
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def get_chat_messages(self, chat_id: int) -> List[Message]:
        """Whole history of a chat, oldest first"""
        result = await self.db.execute(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.timestamp.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def mark_chat_read(self, chat_id: int, reader_id: int) -> int:
        """Flag every unread message not sent by the reader; returns rows changed"""
        result = await self.db.execute(
            update(Message)
            .where(
                and_(
                    Message.chat_id == chat_id,
                    Message.sender_id != reader_id,
                    Message.is_read.is_(False)
                )
            )
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def get_unread_counts(self, user_id: int) -> Dict[int, int]:
        user_chats = select(ChatMember.chat_id).where(ChatMember.user_id == user_id)

        result = await self.db.execute(
            select(Message.sender_id, func.count(Message.id))
            .where(
                and_(
                    Message.chat_id.in_(user_chats),
                    Message.sender_id != user_id,
                    Message.is_read.is_(False)
                )
            )
            .group_by(Message.sender_id)
        )
        return {sender_id: count for sender_id, count in result.all()}

