"""Client-side state machines for chat panels, the inbox and the unread badge."""

from .backend import ChatBackend, LocalChatBackend
from .chat_session import (
    QUICK_REPLIES,
    ChatSession,
    ConfirmedMessage,
    Draft,
    PendingMessage,
    SessionState,
)
from .inbox import InboxView, UnreadBadgePoller

__all__ = [
    "ChatBackend",
    "LocalChatBackend",
    "QUICK_REPLIES",
    "ChatSession",
    "ConfirmedMessage",
    "Draft",
    "PendingMessage",
    "SessionState",
    "InboxView",
    "UnreadBadgePoller",
]
