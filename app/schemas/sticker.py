"""Pydantic schemas for Sticker."""

from datetime import datetime
from typing import List
from pydantic import BaseModel, Field


class StickerResponse(BaseModel):
    id: int
    owner_id: str
    image_url: str
    name: str = ""
    created_at: datetime
    
    class Config:
        from_attributes = True


class StickerListResponse(BaseModel):
    stickers: List[StickerResponse]
    total: int


class StickerSendRequest(BaseModel):
    """Send one of your stickers to another user."""
    receiver_id: str = Field(..., min_length=1, max_length=64)
