"""Pydantic schemas for Conversation (derived inbox rows)."""

from datetime import datetime
from typing import List
from pydantic import BaseModel


class ConversationSummary(BaseModel):
    """One inbox row per counterpart."""
    partner_id: str
    partner_name: str
    partner_avatar: str
    partner_role: str
    last_message: str
    last_message_time: datetime
    unread_count: int = 0


class ConversationListResponse(BaseModel):
    """Response for listing conversations."""
    conversations: List[ConversationSummary]
    total: int
    total_unread: int = 0
