"""In-process fan-out of new messages and read receipts to live subscribers."""

import itertools
import logging
import threading
from typing import Callable, Dict, List, Optional

from app.schemas.message import MessageResponse

logger = logging.getLogger(__name__)

MessageCallback = Callable[[MessageResponse], None]
ReadReceiptCallback = Callable[[str, str, int], None]
Unsubscribe = Callable[[], None]


class Subscription:
    """One live listener.

    Scoped (``counterpart_id`` set): every message between the two users in
    either direction. Unscoped: every message addressed to ``self_id``.
    """

    def __init__(
        self,
        subscription_id: int,
        self_id: str,
        counterpart_id: Optional[str],
        on_message: MessageCallback,
        on_read: Optional[ReadReceiptCallback] = None,
    ):
        self.id = subscription_id
        self.self_id = self_id
        self.counterpart_id = counterpart_id
        self.on_message = on_message
        self.on_read = on_read
        self.active = True

    def matches(self, message: MessageResponse) -> bool:
        if self.counterpart_id is None:
            return message.receiver_id == self.self_id
        return {message.sender_id, message.receiver_id} == {self.self_id, self.counterpart_id}

    def matches_receipt(self, reader_id: str, sender_id: str) -> bool:
        if self.on_read is None or sender_id != self.self_id:
            return False
        return self.counterpart_id is None or self.counterpart_id == reader_id


class RealtimeHub:
    """Manages live subscriptions for real-time chat.

    Callbacks run on the publishing thread. Async consumers must hand the
    event over to their own loop (``loop.call_soon_threadsafe``). A callback
    that raises is dropped, like a dead socket.
    """

    def __init__(self):
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(
        self,
        self_id: str,
        counterpart_id: Optional[str],
        on_message: MessageCallback,
        on_read: Optional[ReadReceiptCallback] = None,
    ) -> Unsubscribe:
        """Register a listener and return its unsubscribe handle."""
        with self._lock:
            subscription = Subscription(next(self._ids), self_id, counterpart_id, on_message, on_read)
            self._subscriptions[subscription.id] = subscription

        scope = counterpart_id or "*"
        logger.debug(f"[RT] Subscribed #{subscription.id} {self_id} <-> {scope}")

        def unsubscribe() -> None:
            with self._lock:
                subscription.active = False
                self._subscriptions.pop(subscription.id, None)

        return unsubscribe

    def _snapshot(self) -> List[Subscription]:
        with self._lock:
            return list(self._subscriptions.values())

    def _drop(self, subscription: Subscription) -> None:
        with self._lock:
            subscription.active = False
            self._subscriptions.pop(subscription.id, None)

    def publish(self, message: MessageResponse) -> int:
        """Deliver a newly persisted message. Returns how many listeners received it."""
        delivered = 0
        for subscription in self._snapshot():
            if not subscription.active or not subscription.matches(message):
                continue
            try:
                subscription.on_message(message)
                delivered += 1
            except Exception:
                logger.exception(f"[RT] Subscriber #{subscription.id} failed on message {message.id}, dropping it")
                self._drop(subscription)
        return delivered

    def publish_read_receipt(self, reader_id: str, sender_id: str, read_count: int) -> int:
        """Tell the sender's listeners that reader has read their messages."""
        delivered = 0
        for subscription in self._snapshot():
            if not subscription.active or not subscription.matches_receipt(reader_id, sender_id):
                continue
            try:
                subscription.on_read(reader_id, sender_id, read_count)
                delivered += 1
            except Exception:
                logger.exception(f"[RT] Subscriber #{subscription.id} failed on read receipt, dropping it")
                self._drop(subscription)
        return delivered

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            for subscription in self._subscriptions.values():
                subscription.active = False
            self._subscriptions.clear()


# Global hub instance
realtime_hub = RealtimeHub()
