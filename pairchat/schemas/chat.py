from pydantic import BaseModel
from typing import Optional, List, Literal
from datetime import datetime

class ChatResponse(BaseModel):
    id: int
    name: Optional[str] = None
    creator_id: int
    created_at: datetime
    
    class Config:
        from_attributes = True

class ChatMemberResponse(BaseModel):
    user_id: int
    username: str
    avatar: Optional[str] = None
    joined_at: Optional[datetime]

class ChatWithMembersResponse(ChatResponse):
    members: List[ChatMemberResponse]

class ConversationRequest(BaseModel):
    recipient_id: int

class ConversationResponse(BaseModel):
    chat_id: int
    created: bool

class RequestDecision(BaseModel):
    user_id: int
    decision: Literal["accept", "decline"]

class DecisionResponse(BaseModel):
    user_id: int
    decision: str
    chat_id: Optional[int] = None
