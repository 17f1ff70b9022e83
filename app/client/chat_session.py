"""Client-side state for one open conversation panel."""

import asyncio
import functools
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Dict, List, Optional, Set, TypeVar, Union

from app.config import settings
from app.core.exceptions import MessagingError, RateLimitedError, TransportError
from app.schemas.message import MessageResponse
from app.schemas.profile import PartnerProfile
from app.utils.timeutils import utcnow

from .backend import ChatBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

TEMP_ID_PREFIX = "temp-"

# Conversation starters offered while a conversation is still empty
QUICK_REPLIES = (
    "Hi! I'm putting together a short film and would love to have you on the crew 🎬",
    "Hi! I really like your portfolio. Open to talking about a collaboration?",
    "Hello, we're planning a weekend shoot. Interested?",
    "Could you share your availability and how you like to work?",
)


class SessionState(str, Enum):
    CLOSED = "closed"
    LOADING_HISTORY = "loadingHistory"
    READY = "ready"


@dataclass
class Draft:
    """What the user asked to send; kept so a failed send can be retried."""

    content: str = ""
    content_type: str = "text"
    media_url: str = ""
    file_content: Optional[bytes] = None
    filename: str = ""


@dataclass
class PendingMessage:
    """Optimistic placeholder shown until the store confirms the send."""

    temp_id: str
    draft: Draft
    created_at: datetime = field(default_factory=utcnow)
    failed: bool = False
    error: Optional[str] = None


@dataclass
class ConfirmedMessage:
    message: MessageResponse

    @property
    def id(self) -> int:
        return self.message.id


ChatItem = Union[ConfirmedMessage, PendingMessage]


class ChatSession:
    """
    closed -> loadingHistory -> ready, and back to closed on close().

    Sends are optimistic and may overlap: each gets a PendingMessage that is
    swapped for the canonical message when the store answers (matched by
    temp_id, never by content). Realtime events are deduplicated by message
    id and kept in the store's (created_at, id) order.
    """

    def __init__(
        self,
        backend: ChatBackend,
        self_id: str,
        partner_id: str,
        timeout: Optional[float] = None,
    ):
        self.backend = backend
        self.self_id = self_id
        self.partner_id = partner_id
        self.timeout = timeout if timeout is not None else settings.CLIENT_CALL_TIMEOUT_SECONDS

        self.state = SessionState.CLOSED
        self.partner: Optional[PartnerProfile] = None
        self._confirmed: Dict[int, MessageResponse] = {}
        self._pending: List[PendingMessage] = []

        # Inline UI state
        self.draft = ""
        self.error: Optional[str] = None
        self.error_code: Optional[str] = None
        self.load_error: Optional[str] = None
        self.rate_limit_warning: Optional[str] = None
        self.show_quick_replies = False
        self.sticker_panel_open = False

        self._unsubscribe = None
        self._generation = 0
        self._tasks: Set[asyncio.Task] = set()
        # Sends that timed out but may still be stored, by temp_id
        self._in_flight: Dict[str, asyncio.Future] = {}

    # ----- Rendering -----

    @property
    def items(self) -> List[ChatItem]:
        """Confirmed messages in store order, then in-flight/failed placeholders."""
        confirmed = sorted(self._confirmed.values(), key=lambda m: (m.created_at, m.id))
        return [ConfirmedMessage(m) for m in confirmed] + list(self._pending)

    @property
    def messages(self) -> List[MessageResponse]:
        return sorted(self._confirmed.values(), key=lambda m: (m.created_at, m.id))

    @property
    def pending(self) -> List[PendingMessage]:
        return list(self._pending)

    @property
    def quick_replies(self):
        return QUICK_REPLIES if self.show_quick_replies else ()

    # ----- Lifecycle -----

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError("Request timed out") from e

    async def open(self) -> None:
        """Load history, subscribe to the pair and mark the partner's messages read.

        Calling open() again after a failed load retries it.
        """
        if self.state == SessionState.READY:
            return
        if self.state == SessionState.LOADING_HISTORY and self.load_error is None:
            return

        self.state = SessionState.LOADING_HISTORY
        self.load_error = None
        self._generation += 1
        generation = self._generation

        # Subscribe before fetching so nothing sent meanwhile is missed
        if self._unsubscribe is None:
            self._unsubscribe = self.backend.subscribe(self.self_id, self.partner_id, self._on_realtime)

        try:
            if self.partner is None:
                self.partner = await self._call(self.backend.get_profile(self.partner_id))
            history = await self._call(self.backend.fetch_conversation(self.self_id, self.partner_id))
        except MessagingError as e:
            if generation == self._generation:
                self.load_error = e.detail
                logger.warning(f"[CLIENT] History load failed for {self.self_id} <-> {self.partner_id}: {e.detail}")
            return

        if generation != self._generation:
            return  # closed while loading

        for message in history:
            self._confirmed[message.id] = message
        self.state = SessionState.READY
        self.show_quick_replies = not self._confirmed and not self._pending

        await self._mark_read()

    async def close(self) -> None:
        """Unsubscribe and drop all state; reopening fetches from scratch."""
        self._generation += 1
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        for task in list(self._in_flight.values()):
            task.cancel()
        self._in_flight.clear()

        self.state = SessionState.CLOSED
        self.partner = None
        self._confirmed.clear()
        self._pending.clear()
        self.draft = ""
        self.error = None
        self.error_code = None
        self.load_error = None
        self.rate_limit_warning = None
        self.show_quick_replies = False
        self.sticker_panel_open = False

    async def _mark_read(self) -> None:
        try:
            await self._call(self.backend.mark_read(self.self_id, self.partner_id))
        except MessagingError as e:
            # Idempotent; the next open or incoming message marks them again
            logger.warning(f"[CLIENT] mark_read failed for {self.self_id} <- {self.partner_id}: {e.detail}")

    def _spawn(self, awaitable: Awaitable) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ----- Realtime -----

    def _merge(self, message: MessageResponse) -> bool:
        if message.id in self._confirmed:
            return False
        self._confirmed[message.id] = message
        return True

    def _on_realtime(self, message: MessageResponse) -> None:
        if self.state == SessionState.CLOSED:
            return
        if {message.sender_id, message.receiver_id} != {self.self_id, self.partner_id}:
            return
        if not self._merge(message):
            return
        self.show_quick_replies = False
        if self.state == SessionState.READY and message.sender_id == self.partner_id:
            self._spawn(self._mark_read())

    # ----- Sending -----

    async def send(self, content: str) -> Optional[MessageResponse]:
        """Send a text message typed in the composer."""
        text = (content or "").strip()
        if not text:
            self._set_error("Message cannot be empty", "validation_error")
            return None
        return await self._dispatch(Draft(content=text))

    async def send_quick_reply(self, index: int) -> Optional[MessageResponse]:
        return await self.send(QUICK_REPLIES[index])

    async def send_sticker(self, image_url: str) -> Optional[MessageResponse]:
        self.sticker_panel_open = False
        return await self._dispatch(Draft(content_type="sticker", media_url=image_url))

    async def send_image(self, file_content: bytes, filename: str) -> Optional[MessageResponse]:
        return await self._dispatch(Draft(content_type="image", file_content=file_content, filename=filename))

    async def retry(self, temp_id: str) -> Optional[MessageResponse]:
        """Re-send a failed placeholder.

        If the timed-out call behind it is still running, wait for that call
        instead of sending again; a late success confirms the placeholder.
        """
        placeholder = self._find_pending(temp_id)
        if placeholder is None or not placeholder.failed:
            return None

        earlier = self._in_flight.get(temp_id)
        if earlier is not None:
            try:
                message = await self._call(asyncio.shield(earlier))
            except MessagingError:
                if not earlier.done():
                    return None  # still unanswered, placeholder stays failed
            else:
                self._confirm_late(placeholder, message)
                return message
            placeholder = self._find_pending(temp_id)
            if placeholder is None or not placeholder.failed:
                return None

        self._pending.remove(placeholder)
        if placeholder.draft.content_type == "text" and self.draft == placeholder.draft.content:
            self.draft = ""
        return await self._dispatch(placeholder.draft)

    def discard(self, temp_id: str) -> None:
        """Remove a failed placeholder without re-sending."""
        placeholder = self._find_pending(temp_id)
        if placeholder is not None and placeholder.failed:
            self._pending.remove(placeholder)

    def dismiss_warning(self) -> None:
        self.rate_limit_warning = None

    def toggle_sticker_panel(self) -> None:
        self.sticker_panel_open = not self.sticker_panel_open

    def _find_pending(self, temp_id: str) -> Optional[PendingMessage]:
        for placeholder in self._pending:
            if placeholder.temp_id == temp_id:
                return placeholder
        return None

    def _set_error(self, message: str, code: str) -> None:
        self.error = message
        self.error_code = code

    async def _dispatch(self, draft: Draft) -> Optional[MessageResponse]:
        if self.state != SessionState.READY:
            self._set_error("Conversation is not open yet", "not_ready")
            return None

        placeholder = PendingMessage(temp_id=f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}", draft=draft)
        self._pending.append(placeholder)
        self.show_quick_replies = False
        self.error = None
        self.error_code = None
        if draft.content_type == "text":
            self.draft = ""
        generation = self._generation

        if draft.content_type == "image":
            call = self.backend.send_image(self.self_id, self.partner_id, draft.file_content or b"", draft.filename)
        else:
            call = self.backend.send(self.self_id, self.partner_id, draft.content, draft.content_type, draft.media_url)
        # A timeout stops the wait, not the send
        task = asyncio.ensure_future(call)

        try:
            message = await self._call(asyncio.shield(task))
        except MessagingError as e:
            if generation == self._generation:
                self._fail(placeholder, e)
                if not task.done():
                    self._in_flight[placeholder.temp_id] = task
                    task.add_done_callback(functools.partial(self._settle_late, placeholder, generation))
            return None

        if generation != self._generation:
            return message  # panel closed meanwhile

        if placeholder in self._pending:
            self._pending.remove(placeholder)
        self._merge(message)
        return message

    def _settle_late(self, placeholder: PendingMessage, generation: int, task: asyncio.Future) -> None:
        self._in_flight.pop(placeholder.temp_id, None)
        if task.cancelled() or generation != self._generation:
            return
        exc = task.exception()
        if exc is not None:
            logger.info(f"[CLIENT] Timed-out send {placeholder.temp_id} failed: {exc}")
            return
        self._confirm_late(placeholder, task.result())

    def _confirm_late(self, placeholder: PendingMessage, message: MessageResponse) -> None:
        """The store accepted a send after the client gave up on it."""
        if placeholder in self._pending:
            self._pending.remove(placeholder)
            if placeholder.draft.content_type == "text" and self.draft == placeholder.draft.content:
                self.draft = ""
            if self.error == placeholder.error:
                self.error = None
                self.error_code = None
            logger.info(f"[CLIENT] Send {placeholder.temp_id} confirmed after timeout as message {message.id}")
        self._merge(message)

    def _fail(self, placeholder: PendingMessage, exc: MessagingError) -> None:
        if placeholder.draft.content_type == "text" and not self.draft:
            self.draft = placeholder.draft.content

        if isinstance(exc, RateLimitedError):
            # Never sent: drop the bubble, warn in the banner
            self._pending.remove(placeholder)
            self.rate_limit_warning = exc.detail
        elif isinstance(exc, TransportError):
            placeholder.failed = True
            placeholder.error = exc.detail
        else:
            self._pending.remove(placeholder)

        self._set_error(exc.detail, exc.code)
        logger.info(f"[CLIENT] Send {self.self_id} -> {self.partner_id} failed: {exc.code}")
