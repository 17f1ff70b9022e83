"""Read-only access to profiles owned by the account service."""

from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.profile import Profile


class CRUDProfile(CRUDBase[Profile]):
    """Profile lookups. Messaging never writes profile fields."""
    
    def get_many(self, db: Session, *, ids: Iterable[str]) -> Dict[str, Profile]:
        """Fetch several profiles in one query, keyed by id. Unknown ids are skipped."""
        id_list = list(set(ids))
        if not id_list:
            return {}
        stmt = select(Profile).where(Profile.id.in_(id_list))
        profiles = self._read(db, "load profiles", lambda: db.scalars(stmt).all())
        return {profile.id: profile for profile in profiles}


# Create instance
crud_profile = CRUDProfile(Profile)
