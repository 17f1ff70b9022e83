"""Service layer for direct messages: validation, throttling, persistence and fan-out."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import (
    MessagingError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    TransportError,
    ValidationError,
)
from app.core.rate_limiter import PairRateLimiter, RateLimitDecision, get_rate_limiter
from app.crud import crud_message, crud_sticker
from app.schemas.message import MessageResponse
from app.services.realtime import RealtimeHub, realtime_hub
from app.utils.file_handler import delete_media, store_media

logger = logging.getLogger(__name__)

FALLBACK_LABELS = {
    "image": "[image]",
    "sticker": "[sticker]",
}


def fallback_label(content_type: str, name: str = "") -> str:
    """Inbox/preview text for a non-text message."""
    label = FALLBACK_LABELS[content_type]
    return f"{label} {name}" if name else label


class MessagingService:
    """
    Send, read and acknowledge direct messages.

    Every send goes through the same pipeline: validate, take a rate-limit
    slot for the ordered pair, append to the store, then publish to the
    realtime hub. Failures are raised as ``app.core.exceptions`` errors.
    """

    def __init__(self, hub: Optional[RealtimeHub] = None, limiter: Optional[PairRateLimiter] = None):
        self.hub = hub or realtime_hub
        self._limiter = limiter

    @property
    def limiter(self) -> PairRateLimiter:
        return self._limiter or get_rate_limiter()

    # ----- Validation -----

    def _validate_pair(self, sender_id: str, receiver_id: str) -> None:
        if not sender_id or not receiver_id:
            raise ValidationError("Sender and recipient are required")
        if sender_id == receiver_id:
            raise ValidationError("You cannot send a message to yourself")

    def validate(
        self,
        *,
        sender_id: str,
        receiver_id: str,
        content: str,
        content_type: str,
        media_url: str,
        label_name: str = "",
    ) -> Tuple[str, str]:
        """
        Check a draft and normalize it.

        Returns:
            (content, media_url) as they will be stored

        Raises:
            ValidationError: Empty text, missing media URL, unknown type or self-messaging
        """
        self._validate_pair(sender_id, receiver_id)

        if content_type == "text":
            text = (content or "").strip()
            if not text:
                raise ValidationError("Message cannot be empty")
            if len(text) > settings.MESSAGE_MAX_LENGTH:
                raise ValidationError(f"Message is too long (max {settings.MESSAGE_MAX_LENGTH} characters)")
            return text, ""

        if content_type in FALLBACK_LABELS:
            url = (media_url or "").strip()
            if not url:
                raise ValidationError(f"A media URL is required for {content_type} messages")
            return fallback_label(content_type, label_name), url

        raise ValidationError(f"Unsupported content type: {content_type}")

    # ----- Sending -----

    def check_limit(self, *, sender_id: str, receiver_id: str) -> RateLimitDecision:
        """Read-only rate-limit check for the composer."""
        return self.limiter.check_limit(sender_id, receiver_id)

    def send_message(
        self,
        db: Session,
        *,
        sender_id: str,
        receiver_id: str,
        content: str = "",
        content_type: str = "text",
        media_url: str = "",
        label_name: str = "",
    ) -> MessageResponse:
        """
        Persist a message and notify live subscribers.

        Args:
            db: Database session
            sender_id: Current user
            receiver_id: Recipient user
            content: Text body (ignored for image/sticker, which store a fallback label)
            content_type: text | image | sticker
            media_url: Required for image/sticker
            label_name: Optional sticker name appended to the fallback label

        Returns:
            The canonical stored message (with its generated id)

        Raises:
            ValidationError, RateLimitedError, TransportError
        """
        content, media_url = self.validate(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            content_type=content_type,
            media_url=media_url,
            label_name=label_name,
        )

        decision = self.limiter.acquire(sender_id, receiver_id)
        if not decision.allowed:
            raise RateLimitedError(decision.reason, retry_after=decision.retry_after)

        try:
            message = crud_message.create_message(
                db,
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                content_type=content_type,
                media_url=media_url,
            )
        except TransportError:
            self.limiter.release(sender_id, receiver_id, decision.stamp)
            logger.error(f"[CHAT] Failed to store message {sender_id} -> {receiver_id}")
            raise

        self.limiter.record_reply(sender_id, receiver_id)

        payload = MessageResponse.model_validate(message)
        logger.info(f"[CHAT] Message {payload.id} {sender_id} -> {receiver_id} ({content_type})")

        delivered = self.hub.publish(payload)
        logger.debug(f"[CHAT] Message {payload.id} pushed to {delivered} live subscriber(s)")
        return payload

    def send_image(
        self,
        db: Session,
        *,
        sender_id: str,
        receiver_id: str,
        file_content: bytes,
        filename: str,
    ) -> MessageResponse:
        """Upload an image, then send it. A failed upload creates no message."""
        self._validate_pair(sender_id, receiver_id)

        # Avoid storing an upload the limiter would reject anyway
        decision = self.check_limit(sender_id=sender_id, receiver_id=receiver_id)
        if not decision.allowed:
            raise RateLimitedError(decision.reason, retry_after=decision.retry_after)

        media_url = store_media(file_content, filename, "chat_image")
        try:
            return self.send_message(
                db,
                sender_id=sender_id,
                receiver_id=receiver_id,
                content_type="image",
                media_url=media_url,
            )
        except MessagingError:
            # No message points at the upload
            delete_media(media_url)
            raise

    def send_sticker(
        self,
        db: Session,
        *,
        sender_id: str,
        receiver_id: str,
        sticker_id: int,
    ) -> MessageResponse:
        """Send a copy of one of the sender's stickers."""
        sticker = crud_sticker.get(db, sticker_id)
        if sticker is None:
            raise NotFoundError("Sticker not found")
        if sticker.owner_id != sender_id:
            raise PermissionDeniedError("You can only send your own stickers")

        return self.send_message(
            db,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content_type="sticker",
            media_url=sticker.image_url,
            label_name=sticker.name,
        )

    # ----- Reading -----

    def fetch_conversation(
        self,
        db: Session,
        *,
        user_id: str,
        partner_id: str,
        limit: Optional[int] = None,
        before_id: Optional[int] = None,
    ) -> Tuple[List[MessageResponse], bool]:
        """History between two users, oldest first, plus whether older pages exist."""
        messages, has_more = crud_message.get_conversation(
            db,
            user_a=user_id,
            user_b=partner_id,
            limit=limit or settings.MESSAGE_HISTORY_LIMIT,
            before_id=before_id,
        )
        return [MessageResponse.model_validate(m) for m in messages], has_more

    def mark_read(self, db: Session, *, reader_id: str, sender_id: str) -> int:
        """Mark sender's messages to reader as read; notify sender's listeners if anything changed."""
        read_count = crud_message.mark_as_read(db, reader_id=reader_id, sender_id=sender_id)
        if read_count > 0:
            logger.info(f"[CHAT] {reader_id} read {read_count} message(s) from {sender_id}")
            self.hub.publish_read_receipt(reader_id, sender_id, read_count)
        return read_count

    def unread_count(self, db: Session, *, user_id: str) -> int:
        """Sum of unread messages across all conversations (notification badge)."""
        return crud_message.count_unread(db, user_id=user_id)


messaging_service = MessagingService()
