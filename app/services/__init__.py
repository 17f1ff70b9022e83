"""Service layer singletons."""

from .realtime import RealtimeHub, realtime_hub
from .profile_service import ProfileService, profile_service
from .messaging_service import MessagingService, messaging_service
from .conversation_service import ConversationService, conversation_service
from .sticker_service import StickerService, sticker_service

__all__ = [
    "RealtimeHub",
    "realtime_hub",
    "ProfileService",
    "profile_service",
    "MessagingService",
    "messaging_service",
    "ConversationService",
    "conversation_service",
    "StickerService",
    "sticker_service",
]
