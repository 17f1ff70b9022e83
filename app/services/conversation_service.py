"""Inbox projection: one summary row per counterpart, recomputed on demand."""

import logging
from typing import List

from sqlalchemy.orm import Session

from app.crud import crud_message
from app.schemas.conversation import ConversationSummary
from app.services.profile_service import ProfileService, profile_service

logger = logging.getLogger(__name__)


class ConversationService:
    """Derive conversations from the message store.

    Nothing here is persisted; every call reflects the store at that moment.
    """

    def __init__(self, profiles: ProfileService = profile_service):
        self.profiles = profiles

    def list_conversations(self, db: Session, *, user_id: str) -> List[ConversationSummary]:
        """Conversations of a user, most recent activity first."""
        latest = crud_message.get_latest_per_partner(db, user_id=user_id)
        if not latest:
            return []

        unread_by_sender = crud_message.get_unread_counts_by_sender(db, user_id=user_id)
        partners = self.profiles.resolve_many(db, [partner_id for partner_id, _ in latest])

        conversations = []
        for partner_id, last_message in latest:
            partner = partners[partner_id]
            conversations.append(
                ConversationSummary(
                    partner_id=partner_id,
                    partner_name=partner.name,
                    partner_avatar=partner.avatar,
                    partner_role=partner.role,
                    last_message=last_message.content,
                    last_message_time=last_message.created_at,
                    unread_count=unread_by_sender.get(partner_id, 0),
                )
            )

        logger.debug(f"[CHAT] {user_id} has {len(conversations)} conversation(s)")
        return conversations


conversation_service = ConversationService()
