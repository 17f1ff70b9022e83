"""Resolve counterpart display fields from the profile collaborator."""

import logging
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from app.crud import crud_profile
from app.models.profile import Profile
from app.schemas.profile import PartnerProfile

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Unknown user"
DEFAULT_ROLE = "Creator"
AVATAR_FALLBACK_URL = "https://api.dicebear.com/9.x/adventurer/svg?seed={seed}"


def to_partner_profile(user_id: str, profile: Optional[Profile]) -> PartnerProfile:
    """Apply display fallbacks; a missing profile still yields a usable header."""
    if profile is None:
        return PartnerProfile(
            id=user_id,
            name=DEFAULT_NAME,
            avatar=AVATAR_FALLBACK_URL.format(seed=user_id),
            role=DEFAULT_ROLE,
        )
    return PartnerProfile(
        id=user_id,
        name=profile.display_name or profile.full_name or profile.username or DEFAULT_NAME,
        avatar=profile.avatar_url or AVATAR_FALLBACK_URL.format(seed=user_id),
        role=profile.role or DEFAULT_ROLE,
    )


class ProfileService:
    def resolve(self, db: Session, user_id: str) -> PartnerProfile:
        return to_partner_profile(user_id, crud_profile.get(db, user_id))

    def resolve_many(self, db: Session, user_ids: Iterable[str]) -> Dict[str, PartnerProfile]:
        ids = list(user_ids)
        profiles = crud_profile.get_many(db, ids=ids)
        missing = [user_id for user_id in ids if user_id not in profiles]
        if missing:
            logger.debug(f"[PROFILE] No profile for {len(missing)} counterpart(s), using fallbacks")
        return {user_id: to_partner_profile(user_id, profiles.get(user_id)) for user_id in ids}


profile_service = ProfileService()
