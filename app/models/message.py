"""Message model for direct messages between two users."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Index, CheckConstraint
from ..database import Base
from ..utils.timeutils import utcnow


CONTENT_TYPES = ("text", "image", "sticker")


class Message(Base):
    """One immutable direct message; only is_read may change after insert."""
    
    __tablename__ = "messages"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Participants (opaque ids owned by the auth/profile collaborator)
    sender_id = Column(String(64), nullable=False, index=True)
    receiver_id = Column(String(64), nullable=False, index=True)
    
    # Payload
    content = Column(Text, nullable=False)
    content_type = Column(String(20), nullable=False, default="text")
    media_url = Column(String(1000), nullable=False, default="")
    
    # Read Status
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    
    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    
    # Constraints & Indexes
    __table_args__ = (
        CheckConstraint(
            "content_type IN (" + ", ".join(f"'{t}'" for t in CONTENT_TYPES) + ")",
            name="check_message_content_type"
        ),
        CheckConstraint("sender_id <> receiver_id", name="check_message_not_self"),
        # Conversation history in both directions, ordered by created_at
        Index('idx_message_pair_created', 'sender_id', 'receiver_id', 'created_at'),
        # Unread counting for a receiver
        Index('idx_message_unread', 'receiver_id', 'is_read', 'sender_id'),
    )
