from pydantic import BaseModel
from typing import Dict
from datetime import datetime

class MessageBase(BaseModel):
    text: str

class MessageCreate(MessageBase):
    chat_id: int

class MessageResponse(MessageBase):
    id: int
    chat_id: int
    sender_id: int
    timestamp: datetime
    is_read: bool
    
    class Config:
        from_attributes = True

class MarkReadResponse(BaseModel):
    chat_id: int
    updated: int

class UnreadCountsResponse(BaseModel):
    # sender id -> unread messages from that sender
    counts: Dict[int, int]
    total: int

class SendMessageWebSocket(BaseModel):
    chat_id: int
    text: str

class RoomAction(BaseModel):
    chat_id: int
