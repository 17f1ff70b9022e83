"""Pydantic schemas for Message."""

from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field


ContentType = Literal["text", "image", "sticker"]


class MessageCreate(BaseModel):
    """Schema for sending a message to another user."""
    receiver_id: str = Field(..., min_length=1, max_length=64, description="User id of the recipient")
    content: str = Field("", max_length=5000, description="Text, or an optional label for image/sticker messages")
    content_type: ContentType = Field("text", description="text | image | sticker")
    media_url: str = Field("", max_length=1000, description="Required for image and sticker messages")


class MessageResponse(BaseModel):
    """Canonical persisted message."""
    id: int
    sender_id: str
    receiver_id: str
    content: str
    content_type: ContentType
    media_url: str = ""
    is_read: bool
    created_at: datetime
    
    class Config:
        from_attributes = True


class MessageListResponse(BaseModel):
    """Response for conversation history."""
    messages: List[MessageResponse]
    has_more: bool = Field(..., description="Whether older messages exist before the first returned one")


class MarkReadResponse(BaseModel):
    """Result of marking a counterpart's messages as read."""
    read_count: int
    message: str


class UnreadCountResponse(BaseModel):
    """Total unread messages for the badge."""
    unread_count: int


class RateLimitResponse(BaseModel):
    """Whether the current user may send to a given recipient right now."""
    allowed: bool
    reason: Optional[str] = None
    retry_after: Optional[int] = Field(None, description="Seconds until the violated window frees a slot")
