from sqlalchemy import Column, String, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel

class Chat(BaseModel):
    __tablename__ = "chats"
    
    name = Column(String(100), nullable=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Canonical pair key: (min, max) of the two member ids
    pair_low_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    pair_high_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    
    creator = relationship("User", foreign_keys=[creator_id])
    messages = relationship("Message", back_populates="chat", cascade="all, delete-orphan")
    members = relationship("ChatMember", back_populates="chat", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("pair_low_id", "pair_high_id", name="unique_chat_pair"),
    )

    @staticmethod
    def pair_key(user_id1: int, user_id2: int) -> tuple:
        return (user_id1, user_id2) if user_id1 < user_id2 else (user_id2, user_id1)
