"""Sticker model: a user-owned reusable image that can be sent as a message."""

from sqlalchemy import Column, Integer, String, DateTime
from ..database import Base
from ..utils.timeutils import utcnow


class Sticker(Base):
    __tablename__ = "stickers"
    
    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(64), nullable=False, index=True)
    image_url = Column(String(1000), nullable=False)
    name = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
