import logging
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pairchat.exceptions import EmptyBody, NotAMember, NotFound, StoreError
from pairchat.models.message import Message
from pairchat.repositories.chat_repository import ChatRepository
from pairchat.repositories.message_repository import MessageRepository
from pairchat.schemas.message import MessageResponse
from pairchat.websocket_manager import ConnectionManager

logger = logging.getLogger(__name__)


class MessageService:
    """Room & message store operations; events go out only after a commit."""

    def __init__(self, db: AsyncSession, relay: ConnectionManager):
        self.db = db
        self.relay = relay
        self.chats = ChatRepository(db)
        self.messages = MessageRepository(db)

    async def append_message(self, chat_id: int, sender_id: int, text: str) -> Message:
        await self.ensure_member(chat_id, sender_id)
        if not text or not text.strip():
            raise EmptyBody()

        try:
            message = await self.messages.create(chat_id, sender_id, text)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception(f"Failed to store message from user {sender_id} in chat {chat_id}")
            raise StoreError() from exc

        await self._publish(
            chat_id,
            self.relay.broadcast_new_message(
                MessageResponse.model_validate(message).model_dump(mode="json"),
                chat_id
            )
        )
        return message

    async def fetch_history(self, chat_id: int) -> List[Message]:
        if not await self.chats.exists(chat_id):
            raise NotFound("Chat not found")
        return await self.messages.get_chat_messages(chat_id)

    async def mark_read(self, chat_id: int, reader_id: int) -> int:
        await self.ensure_member(chat_id, reader_id)

        try:
            updated = await self.messages.mark_chat_read(chat_id, reader_id)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception(f"Failed to mark chat {chat_id} read for user {reader_id}")
            raise StoreError() from exc

        if updated:
            logger.debug(f"User {reader_id} read {updated} messages in chat {chat_id}")
            await self._publish(chat_id, self.relay.broadcast_messages_read(chat_id, reader_id, updated))
        return updated

    async def unread_counts_for(self, user_id: int) -> Dict[int, int]:
        return await self.messages.get_unread_counts(user_id)

    async def ensure_member(self, chat_id: int, user_id: int):
        if await self.chats.is_member(chat_id, user_id):
            return
        if not await self.chats.exists(chat_id):
            raise NotFound("Chat not found")
        raise NotAMember()

    async def _publish(self, chat_id: int, broadcast):
        # the write is already committed; relay failures only cost live delivery
        try:
            await broadcast
        except Exception:
            logger.exception(f"Failed to publish event for chat {chat_id}")
