from .base import Base
from .user import User
from .chat import Chat
from .chat_member import ChatMember
from .message import Message
from .relationship import Relationship, RelationshipStatus

__all__ = [
    "Base",
    "User", 
    "Chat",
    "ChatMember",
    "Message",
    "Relationship",
    "RelationshipStatus",
]
