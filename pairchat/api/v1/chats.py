from typing import List
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pairchat.database import get_db
from pairchat.exceptions import NotAMember, NotFound
from pairchat.repositories.chat_repository import ChatRepository
from pairchat.schemas.chat import (
    ChatWithMembersResponse,
    ConversationRequest,
    ConversationResponse,
    DecisionResponse,
    RequestDecision,
)
from pairchat.schemas.user import UserSummary
from pairchat.services.admission import AdmissionController
from pairchat.auth import get_current_active_user
from pairchat.models.chat import Chat
from pairchat.models.user import User

router = APIRouter()


def chat_with_members(chat: Chat) -> dict:
    return {
        "id": chat.id,
        "name": chat.name,
        "creator_id": chat.creator_id,
        "created_at": chat.created_at,
        "members": [
            {
                "user_id": member.user_id,
                "username": member.user.username,
                "avatar": member.user.avatar,
                "joined_at": member.joined_at
            }
            for member in chat.members
        ]
    }

@router.get("/", response_model=List[ChatWithMembersResponse])
async def get_user_chats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    chat_repo = ChatRepository(db)
    chats = await chat_repo.get_user_chats(current_user.id)
    return [chat_with_members(chat) for chat in chats]

@router.post("/request", response_model=ConversationResponse)
async def request_conversation(
    request_data: ConversationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Open the direct chat with a user, creating it on first contact"""
    admission = AdmissionController(db)
    ticket = await admission.request_conversation(current_user.id, request_data.recipient_id)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED if ticket.created else status.HTTP_200_OK,
        content={"chat_id": ticket.chat_id, "created": ticket.created}
    )

@router.post("/respond", response_model=DecisionResponse)
async def respond_to_request(
    decision_data: RequestDecision,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Accept or decline (mark as spam) a user who wrote to you"""
    admission = AdmissionController(db)
    ticket = await admission.respond_to_request(current_user.id, decision_data.user_id, decision_data.decision)

    return {
        "user_id": decision_data.user_id,
        "decision": decision_data.decision,
        "chat_id": ticket.chat_id if ticket else None
    }

@router.get("/pending", response_model=List[UserSummary])
async def list_pending_requests(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await AdmissionController(db).list_pending_requests(current_user.id)

@router.get("/spam", response_model=List[UserSummary])
async def list_spam(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await AdmissionController(db).list_spam(current_user.id)

@router.get("/{chat_id}", response_model=ChatWithMembersResponse)
async def get_chat(
    chat_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    chat_repo = ChatRepository(db)

    chat = await chat_repo.get_by_id(chat_id)
    if not chat:
        raise NotFound("Chat not found")
    if all(member.user_id != current_user.id for member in chat.members):
        raise NotAMember()

    return chat_with_members(chat)
