from sqlalchemy import Column, Integer, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from .base import BaseModel

class RelationshipStatus(PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    SPAMMED = "spammed"

# Allowed moves; SPAMMED is terminal
TRANSITIONS = {
    RelationshipStatus.PENDING: {RelationshipStatus.ACCEPTED, RelationshipStatus.SPAMMED},
    RelationshipStatus.ACCEPTED: {RelationshipStatus.SPAMMED},
    RelationshipStatus.SPAMMED: set(),
}

class Relationship(BaseModel):
    """Stance of ``owner`` toward ``peer``: (B, A, SPAMMED) means B blocked A."""

    __tablename__ = "relationships"
    
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    peer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(Enum(RelationshipStatus), nullable=False, default=RelationshipStatus.PENDING)
    
    owner = relationship("User", foreign_keys=[owner_id])
    peer = relationship("User", foreign_keys=[peer_id])
    
    __table_args__ = (
        UniqueConstraint("owner_id", "peer_id", name="unique_relationship_pair"),
    )

    def can_move_to(self, status: RelationshipStatus) -> bool:
        return status == self.status or status in TRANSITIONS[self.status]
