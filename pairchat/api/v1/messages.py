from typing import List
from fastapi import APIRouter, Depends, status
from fastapi.requests import HTTPConnection
from sqlalchemy.ext.asyncio import AsyncSession

from pairchat.database import get_db
from pairchat.schemas.message import MessageResponse, MessageCreate, MarkReadResponse, UnreadCountsResponse
from pairchat.services.messaging import MessageService
from pairchat.auth import get_current_active_user
from pairchat.models.user import User

router = APIRouter()


async def get_message_service(connection: HTTPConnection, db: AsyncSession = Depends(get_db)) -> MessageService:
    return MessageService(db, connection.app.state.relay)

@router.get("/history/{chat_id}", response_model=List[MessageResponse])
async def get_chat_history(
    chat_id: int,
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(get_current_active_user)
):
    await service.ensure_member(chat_id, current_user.id)
    return await service.fetch_history(chat_id)

@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(get_current_active_user)
):
    """Store a message, then push it to everyone in the room"""
    return await service.append_message(message_data.chat_id, current_user.id, message_data.text)

@router.post("/read/{chat_id}", response_model=MarkReadResponse)
async def mark_chat_read(
    chat_id: int,
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(get_current_active_user)
):
    updated = await service.mark_read(chat_id, current_user.id)
    return {"chat_id": chat_id, "updated": updated}

@router.get("/unread-counts", response_model=UnreadCountsResponse)
async def get_unread_counts(
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(get_current_active_user)
):
    """Unread messages per sender across all of the user's chats"""
    counts = await service.unread_counts_for(current_user.id)
    return {"counts": counts, "total": sum(counts.values())}
