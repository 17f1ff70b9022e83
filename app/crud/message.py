"""CRUD operations for Message."""

from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_, or_, case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import TransportError
from app.crud.base import CRUDBase
from app.models.message import Message


def _pair_filter(user_a: str, user_b: str):
    """Messages between two users in either direction."""
    return or_(
        and_(Message.sender_id == user_a, Message.receiver_id == user_b),
        and_(Message.sender_id == user_b, Message.receiver_id == user_a),
    )


class CRUDMessage(CRUDBase[Message]):
    """CRUD operations for Message.

    Rows are append-only: the only in-place change is the ``is_read`` flip in
    ``mark_as_read``. There is no update or delete of content.
    """

    def create_message(
        self,
        db: Session,
        *,
        sender_id: str,
        receiver_id: str,
        content: str,
        content_type: str = "text",
        media_url: str = "",
    ) -> Message:
        """Append a new unread message and return the persisted row."""
        return self.create(
            db,
            obj_in={
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "content": content,
                "content_type": content_type,
                "media_url": media_url or "",
                "is_read": False,
            },
        )

    def get_conversation(
        self,
        db: Session,
        *,
        user_a: str,
        user_b: str,
        limit: int = 200,
        before_id: Optional[int] = None,
    ) -> Tuple[List[Message], bool]:
        """Get the most recent ``limit`` messages between two users, oldest first.

        Args:
            user_a: One participant (argument order does not matter)
            user_b: The other participant
            limit: Page size
            before_id: Only return messages older than this message (load-more cursor)

        Returns:
            (messages ordered by created_at then id, whether older messages exist)
        """
        conditions = [_pair_filter(user_a, user_b)]

        if before_id is not None:
            anchor = self.get(db, before_id)
            if anchor is None:
                return [], False
            conditions.append(
                or_(
                    Message.created_at < anchor.created_at,
                    and_(Message.created_at == anchor.created_at, Message.id < anchor.id),
                )
            )

        stmt = (
            select(Message)
            .where(and_(*conditions))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit + 1)
        )
        rows = self._read(db, "load conversation", lambda: list(db.scalars(stmt).all()))
        has_more = len(rows) > limit
        page = rows[:limit]
        page.reverse()  # Oldest first for chat UI
        return page, has_more

    def mark_as_read(
        self,
        db: Session,
        *,
        reader_id: str,
        sender_id: str,
    ) -> int:
        """Mark every unread message from sender to reader as read.

        A single conditional UPDATE; a repeat call changes nothing.

        Returns:
            Number of messages that flipped to read
        """
        stmt = (
            update(Message)
            .where(
                and_(
                    Message.receiver_id == reader_id,
                    Message.sender_id == sender_id,
                    Message.is_read == False,  # noqa: E712
                )
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.execute(stmt)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise TransportError("Could not mark messages as read") from e
        return result.rowcount or 0

    def count_unread(self, db: Session, *, user_id: str) -> int:
        """Total unread messages addressed to a user, across all senders."""
        stmt = select(func.count(Message.id)).where(
            and_(
                Message.receiver_id == user_id,
                Message.is_read == False,  # noqa: E712
            )
        )
        return self._read(db, "count unread messages", lambda: db.scalar(stmt)) or 0

    def count_unread_from(self, db: Session, *, reader_id: str, sender_id: str) -> int:
        """Unread messages from one sender to one reader."""
        stmt = select(func.count(Message.id)).where(
            and_(
                Message.receiver_id == reader_id,
                Message.sender_id == sender_id,
                Message.is_read == False,  # noqa: E712
            )
        )
        return self._read(db, "count unread messages", lambda: db.scalar(stmt)) or 0

    def get_latest_per_partner(self, db: Session, *, user_id: str) -> List[Tuple[str, Message]]:
        """Most recent message with every counterpart of a user, newest activity first."""
        partner_expr = case(
            (Message.sender_id == user_id, Message.receiver_id),
            else_=Message.sender_id,
        )
        partner = partner_expr.label("partner_id")
        row_number = func.row_number().over(
            partition_by=partner_expr,
            order_by=(Message.created_at.desc(), Message.id.desc()),
        ).label("rn")
        ranked = (
            select(Message.id.label("message_id"), partner, row_number)
            .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .subquery()
        )
        stmt = (
            select(ranked.c.partner_id, Message)
            .select_from(ranked)
            .join(Message, Message.id == ranked.c.message_id)
            .where(ranked.c.rn == 1)
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        rows = self._read(db, "load conversations", lambda: db.execute(stmt).all())
        return [(partner_id, message) for partner_id, message in rows]

    def get_unread_counts_by_sender(self, db: Session, *, user_id: str) -> Dict[str, int]:
        """Unread counts addressed to a user, grouped by sender."""
        stmt = (
            select(Message.sender_id, func.count(Message.id))
            .where(
                and_(
                    Message.receiver_id == user_id,
                    Message.is_read == False,  # noqa: E712
                )
            )
            .group_by(Message.sender_id)
        )
        rows = self._read(db, "count unread messages", lambda: db.execute(stmt).all())
        return {sender_id: count for sender_id, count in rows}


# Create instance
crud_message = CRUDMessage(Message)
