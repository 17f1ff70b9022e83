"""Chat endpoints for direct messages between crew members."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_db
from app.config import settings
from app.schemas.conversation import ConversationListResponse
from app.schemas.message import (
    MarkReadResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    RateLimitResponse,
    UnreadCountResponse,
)
from app.schemas.sticker import StickerSendRequest
from app.services.conversation_service import conversation_service
from app.services.messaging_service import messaging_service
from app.utils.file_handler import read_upload_file

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/chat",
    tags=["Chat"],
)


@router.get(
    "/conversations",
    response_model=ConversationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List conversations",
    description="""
    Inbox for the current user: one row per counterpart with the last message,
    its time and the number of unread messages from that counterpart.

    Conversations are ordered by last_message_time (most recent first).
    """,
)
def list_conversations(
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ConversationListResponse:
    """List all conversations for the current user."""
    conversations = conversation_service.list_conversations(db, user_id=current_user_id)
    return ConversationListResponse(
        conversations=conversations,
        total=len(conversations),
        total_unread=sum(c.unread_count for c in conversations),
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Get unread message count",
    description="Total unread messages across all conversations, for the notification badge.",
)
def get_unread_count(
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> UnreadCountResponse:
    return UnreadCountResponse(
        unread_count=messaging_service.unread_count(db, user_id=current_user_id)
    )


@router.get(
    "/conversations/{partner_id}/messages",
    response_model=MessageListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get messages",
    description="""
    Get the most recent messages exchanged with `partner_id`.

    Messages are returned in chronological order (oldest first) for chat UI.
    Pass the id of the oldest loaded message as `before_id` to load older ones.
    """,
)
def get_messages(
    partner_id: str,
    limit: int = Query(
        settings.MESSAGE_HISTORY_LIMIT,
        ge=1,
        le=settings.MESSAGE_HISTORY_LIMIT,
        description="Maximum number of messages to return",
    ),
    before_id: Optional[int] = Query(None, ge=1, description="Only return messages older than this one"),
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageListResponse:
    """Get messages for a conversation."""
    messages, has_more = messaging_service.fetch_conversation(
        db,
        user_id=current_user_id,
        partner_id=partner_id,
        limit=limit,
        before_id=before_id,
    )
    return MessageListResponse(messages=messages, has_more=has_more)


@router.post(
    "/conversations/{partner_id}/mark-read",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark messages as read",
    description="Mark every unread message from `partner_id` to the current user as read. Idempotent.",
)
def mark_messages_as_read(
    partner_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MarkReadResponse:
    read_count = messaging_service.mark_read(db, reader_id=current_user_id, sender_id=partner_id)
    return MarkReadResponse(
        read_count=read_count,
        message=f"{read_count} message(s) marked as read.",
    )


@router.get(
    "/conversations/{partner_id}/rate-limit",
    response_model=RateLimitResponse,
    status_code=status.HTTP_200_OK,
    summary="Check send limit",
    description="Whether the current user may send a message to `partner_id` right now.",
)
def check_rate_limit(
    partner_id: str,
    current_user_id: str = Depends(get_current_user_id),
) -> RateLimitResponse:
    decision = messaging_service.check_limit(sender_id=current_user_id, receiver_id=partner_id)
    return RateLimitResponse(
        allowed=decision.allowed,
        reason=decision.reason,
        retry_after=decision.retry_after,
    )


@router.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
    description="""
    Send a message to `receiver_id`.

    - **text**: `content` is required.
    - **image** / **sticker**: `media_url` is required; the stored content is a
      fallback label such as `[image]`.

    Returns the canonical stored message; clients replace their optimistic
    placeholder with it.
    """,
)
def send_message(
    message_in: MessageCreate,
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    return messaging_service.send_message(
        db,
        sender_id=current_user_id,
        receiver_id=message_in.receiver_id,
        content=message_in.content,
        content_type=message_in.content_type,
        media_url=message_in.media_url,
    )


@router.post(
    "/messages/image",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send image",
    description="Upload an image (jpg/png/gif/webp) and send it. Nothing is sent if the upload fails.",
)
def send_image_message(
    receiver_id: str = Form(..., min_length=1, max_length=64),
    file: UploadFile = File(...),
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    file_content, filename = read_upload_file(file)
    return messaging_service.send_image(
        db,
        sender_id=current_user_id,
        receiver_id=receiver_id,
        file_content=file_content,
        filename=filename,
    )


@router.post(
    "/messages/sticker/{sticker_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send sticker",
    description="Send a copy of one of your stickers.",
)
def send_sticker_message(
    sticker_id: int,
    payload: StickerSendRequest,
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageResponse:
    return messaging_service.send_sticker(
        db,
        sender_id=current_user_id,
        receiver_id=payload.receiver_id,
        sticker_id=sticker_id,
    )
