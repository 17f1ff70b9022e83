"""Async backend seam used by the client state machines."""

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import TransportError
from app.database import SessionLocal
from app.schemas.conversation import ConversationSummary
from app.schemas.message import MessageResponse
from app.schemas.profile import PartnerProfile
from app.services.conversation_service import ConversationService, conversation_service
from app.services.messaging_service import MessagingService, messaging_service
from app.services.profile_service import ProfileService, profile_service
from app.services.realtime import RealtimeHub, Unsubscribe, realtime_hub

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChatBackend(Protocol):
    """Everything a chat client needs from the messaging core.

    Coroutines raise ``app.core.exceptions`` errors. ``subscribe`` must call
    ``on_message`` on the subscriber's event loop.
    """

    async def get_profile(self, user_id: str) -> PartnerProfile: ...

    async def fetch_conversation(self, user_id: str, partner_id: str) -> List[MessageResponse]: ...

    async def send(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        content_type: str = "text",
        media_url: str = "",
    ) -> MessageResponse: ...

    async def send_image(
        self, sender_id: str, receiver_id: str, file_content: bytes, filename: str
    ) -> MessageResponse: ...

    async def mark_read(self, reader_id: str, sender_id: str) -> int: ...

    async def list_conversations(self, user_id: str) -> List[ConversationSummary]: ...

    async def unread_count(self, user_id: str) -> int: ...

    def subscribe(
        self,
        self_id: str,
        counterpart_id: Optional[str],
        on_message: Callable[[MessageResponse], None],
    ) -> Unsubscribe: ...


class LocalChatBackend:
    """ChatBackend over the in-process services.

    Blocking database work runs in a worker thread with its own session, so
    the caller's event loop stays responsive.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        messaging: MessagingService = messaging_service,
        conversations: ConversationService = conversation_service,
        profiles: ProfileService = profile_service,
        hub: Optional[RealtimeHub] = None,
    ):
        self.session_factory = session_factory
        self.messaging = messaging
        self.conversations = conversations
        self.profiles = profiles
        self.hub = hub or messaging.hub or realtime_hub

    def _run(self, work: Callable[[Session], T]) -> T:
        db = self.session_factory()
        try:
            return work(db)
        except SQLAlchemyError as e:
            logger.error(f"[CLIENT] Backend call failed: {e}")
            raise TransportError() from e
        finally:
            db.close()

    async def _call(self, work: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._run, work)

    async def get_profile(self, user_id: str) -> PartnerProfile:
        return await self._call(lambda db: self.profiles.resolve(db, user_id))

    async def fetch_conversation(self, user_id: str, partner_id: str) -> List[MessageResponse]:
        messages, _ = await self._call(
            lambda db: self.messaging.fetch_conversation(db, user_id=user_id, partner_id=partner_id)
        )
        return messages

    async def send(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        content_type: str = "text",
        media_url: str = "",
    ) -> MessageResponse:
        return await self._call(
            lambda db: self.messaging.send_message(
                db,
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                content_type=content_type,
                media_url=media_url,
            )
        )

    async def send_image(
        self, sender_id: str, receiver_id: str, file_content: bytes, filename: str
    ) -> MessageResponse:
        return await self._call(
            lambda db: self.messaging.send_image(
                db,
                sender_id=sender_id,
                receiver_id=receiver_id,
                file_content=file_content,
                filename=filename,
            )
        )

    async def mark_read(self, reader_id: str, sender_id: str) -> int:
        return await self._call(
            lambda db: self.messaging.mark_read(db, reader_id=reader_id, sender_id=sender_id)
        )

    async def list_conversations(self, user_id: str) -> List[ConversationSummary]:
        return await self._call(lambda db: self.conversations.list_conversations(db, user_id=user_id))

    async def unread_count(self, user_id: str) -> int:
        return await self._call(lambda db: self.messaging.unread_count(db, user_id=user_id))

    def subscribe(
        self,
        self_id: str,
        counterpart_id: Optional[str],
        on_message: Callable[[MessageResponse], None],
    ) -> Unsubscribe:
        """Subscribe on the hub; must be called from the subscriber's running loop."""
        loop = asyncio.get_running_loop()

        def deliver(message: MessageResponse) -> None:
            loop.call_soon_threadsafe(on_message, message)

        return self.hub.subscribe(self_id, counterpart_id, deliver)
