"""
SQLAlchemy Models for CrewLink messaging
"""

from ..database import Base
from .profile import Profile
from .message import Message
from .sticker import Sticker

# Export all models
__all__ = [
    "Base",
    "Profile",
    "Message",
    "Sticker",
]
