from .message import (
	ContentType,
	MessageCreate,
	MessageResponse,
	MessageListResponse,
	MarkReadResponse,
	UnreadCountResponse,
	RateLimitResponse,
)
from .conversation import (
	ConversationSummary,
	ConversationListResponse,
)
from .sticker import (
	StickerResponse,
	StickerListResponse,
	StickerSendRequest,
)
from .profile import PartnerProfile

__all__ = [
	"ContentType",
	"MessageCreate",
	"MessageResponse",
	"MessageListResponse",
	"MarkReadResponse",
	"UnreadCountResponse",
	"RateLimitResponse",
	"ConversationSummary",
	"ConversationListResponse",
	"StickerResponse",
	"StickerListResponse",
	"StickerSendRequest",
	"PartnerProfile",
]
