"""
Admission controller: decides whether two users may share a room and
creates that room exactly once per unordered pair.

It owns no tables. Rooms and memberships belong to ``ChatRepository``,
moderation state to ``RelationshipRepository``; this module only orders the
calls and draws the transaction boundary around room creation.
"""

import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pairchat.exceptions import (
    AdmissionFailed,
    Blocked,
    InvalidTarget,
    SelfConversation,
    StoreError,
    ValidationError,
)
from pairchat.models.relationship import RelationshipStatus
from pairchat.models.user import User
from pairchat.repositories.chat_repository import ChatRepository
from pairchat.repositories.relationship_repository import RelationshipRepository
from pairchat.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

ACCEPT = "accept"
DECLINE = "decline"


@dataclass(frozen=True)
class ConversationTicket:
    chat_id: int
    created: bool


class AdmissionController:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.chats = ChatRepository(db)
        self.relationships = RelationshipRepository(db)

    async def request_conversation(self, requester_id: int, target_id: int) -> ConversationTicket:
        """
        Return the room shared by requester and target, creating it if needed.

        Raises SelfConversation, InvalidTarget, Blocked when the target has
        spammed the requester, or AdmissionFailed when the room could not be
        created.
        """
        await self._check_target(requester_id, target_id)
        await self._check_not_blocked(requester_id, target_id)
        return await self._ensure_room(requester_id, target_id)

    async def respond_to_request(self, current_user_id: int, other_user_id: int, decision: str):
        """
        Accept or decline ``other_user_id`` on behalf of ``current_user_id``.

        Accepting returns the pair's ConversationTicket and raises Blocked when
        the other user has spammed the current one; declining returns None and
        keeps any existing history.
        """
        if decision not in (ACCEPT, DECLINE):
            raise ValidationError(f"Unknown decision: {decision}")
        await self._check_target(current_user_id, other_user_id)
        if decision == ACCEPT:
            # accepting opens the room too
            await self._check_not_blocked(current_user_id, other_user_id)

        new_status = RelationshipStatus.ACCEPTED if decision == ACCEPT else RelationshipStatus.SPAMMED
        try:
            relationship = await self.relationships.set_status(current_user_id, other_user_id, new_status)
            if relationship is None:
                await self.db.rollback()
                raise ValidationError("This user has been marked as spam")
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception(f"Failed to record {decision} of user {other_user_id} by user {current_user_id}")
            raise StoreError() from exc

        logger.info(f"User {current_user_id} chose {decision} for user {other_user_id}")
        if decision == DECLINE:
            return None
        return await self._ensure_room(current_user_id, other_user_id)

    async def list_pending_requests(self, user_id: int) -> List[User]:
        return await self.relationships.get_pending_senders(user_id)

    async def list_spam(self, user_id: int) -> List[User]:
        return await self.relationships.get_peers(user_id, RelationshipStatus.SPAMMED)

    async def _check_target(self, user_id: int, target_id: int):
        if user_id == target_id:
            raise SelfConversation()
        if await self.users.get_by_id(target_id) is None:
            raise InvalidTarget()

    async def _check_not_blocked(self, requester_id: int, target_id: int):
        status = await self.relationships.get_status(target_id, requester_id)
        if status == RelationshipStatus.SPAMMED:
            logger.info(f"User {requester_id} is blocked by user {target_id}")
            raise Blocked()

    async def _ensure_room(self, requester_id: int, target_id: int) -> ConversationTicket:
        existing = await self.chats.get_direct_chat(requester_id, target_id)
        if existing:
            logger.debug(f"Reusing chat {existing.id} for users {requester_id} and {target_id}")
            return ConversationTicket(chat_id=existing.id, created=False)

        try:
            chat = await self.chats.add_direct_chat(requester_id, target_id)
            await self.relationships.add_if_absent(requester_id, target_id, RelationshipStatus.ACCEPTED)
            await self.relationships.add_if_absent(target_id, requester_id, RelationshipStatus.PENDING)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            # A concurrent request created the pair first
            existing = await self.chats.get_direct_chat(requester_id, target_id)
            if existing:
                logger.info(f"Lost creation race for users {requester_id} and {target_id}, using chat {existing.id}")
                return ConversationTicket(chat_id=existing.id, created=False)
            logger.exception(f"Could not create chat for users {requester_id} and {target_id}")
            raise AdmissionFailed()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception(f"Could not create chat for users {requester_id} and {target_id}")
            raise AdmissionFailed() from exc

        logger.info(f"Created chat {chat.id} for users {requester_id} and {target_id}")
        return ConversationTicket(chat_id=chat.id, created=True)
