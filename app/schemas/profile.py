"""Pydantic schemas for profile decoration."""

from pydantic import BaseModel


class PartnerProfile(BaseModel):
    """Display fields for a conversation counterpart."""
    id: str
    name: str
    avatar: str
    role: str
