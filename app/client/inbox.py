"""Inbox list and unread badge: the two read models outside an open chat."""

import asyncio
import logging
from typing import Callable, List, Optional

from app.config import settings
from app.core.exceptions import MessagingError, TransportError
from app.schemas.conversation import ConversationSummary
from app.schemas.message import MessageResponse

from .backend import ChatBackend

logger = logging.getLogger(__name__)


class InboxView:
    """Conversation list refreshed on open and whenever a message arrives.

    Uses the unscoped subscription only as a change signal; the rows always
    come from a fresh ``list_conversations``.
    """

    def __init__(self, backend: ChatBackend, user_id: str, timeout: Optional[float] = None):
        self.backend = backend
        self.user_id = user_id
        self.timeout = timeout if timeout is not None else settings.CLIENT_CALL_TIMEOUT_SECONDS
        self.conversations: List[ConversationSummary] = []
        self.error: Optional[str] = None
        self.is_open = False
        self._unsubscribe = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._dirty = False

    @property
    def total_unread(self) -> int:
        return sum(c.unread_count for c in self.conversations)

    async def open(self) -> None:
        if self.is_open:
            return
        self.is_open = True
        self._unsubscribe = self.backend.subscribe(self.user_id, None, self._on_message)
        await self.refresh()

    async def close(self) -> None:
        self.is_open = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def refresh(self) -> None:
        """Recompute the inbox from the store. Failures leave the old rows and set ``error``."""
        try:
            conversations = await asyncio.wait_for(
                self.backend.list_conversations(self.user_id), self.timeout
            )
        except asyncio.TimeoutError:
            self.error = TransportError.default_detail
            logger.warning(f"[CLIENT] Inbox refresh timed out for {self.user_id}")
            return
        except MessagingError as e:
            self.error = e.detail
            logger.warning(f"[CLIENT] Inbox refresh failed for {self.user_id}: {e.detail}")
            return
        self.error = None
        self.conversations = conversations

    def _on_message(self, message: MessageResponse) -> None:
        if not self.is_open:
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            self._dirty = True
            return
        self._refresh_task = asyncio.ensure_future(self._refresh_until_clean())

    async def _refresh_until_clean(self) -> None:
        # Events that land mid-refresh collapse into one more pass
        while True:
            self._dirty = False
            await self.refresh()
            if not self._dirty or not self.is_open:
                return

    async def wait_idle(self) -> None:
        """Wait for an in-progress event-driven refresh (tests, shutdown)."""
        if self._refresh_task is not None:
            await asyncio.gather(self._refresh_task, return_exceptions=True)


class UnreadBadgePoller:
    """Polls the total unread count on a fixed interval, independent of open chats.

    May lag the real value by up to one interval.
    """

    def __init__(
        self,
        backend: ChatBackend,
        user_id: str,
        interval: Optional[float] = None,
        on_change: Optional[Callable[[int], None]] = None,
        timeout: Optional[float] = None,
    ):
        self.backend = backend
        self.user_id = user_id
        self.interval = interval if interval is not None else settings.UNREAD_POLL_INTERVAL_SECONDS
        self.timeout = timeout if timeout is not None else settings.CLIENT_CALL_TIMEOUT_SECONDS
        self.on_change = on_change
        self.count = 0
        self._task: Optional[asyncio.Task] = None

    async def poll_once(self) -> int:
        try:
            count = await asyncio.wait_for(self.backend.unread_count(self.user_id), self.timeout)
        except (asyncio.TimeoutError, MessagingError) as e:
            # Keep showing the last known value
            logger.warning(f"[CLIENT] Unread poll failed for {self.user_id}: {e!r}")
            return self.count
        if count != self.count:
            self.count = count
            if self.on_change is not None:
                self.on_change(count)
        return count

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
