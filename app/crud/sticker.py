"""CRUD operations for Sticker."""

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.sticker import Sticker


class CRUDSticker(CRUDBase[Sticker]):
    """CRUD operations for Sticker."""
    
    def get_by_owner(self, db: Session, *, owner_id: str) -> List[Sticker]:
        """Get a user's stickers, newest first."""
        stmt = (
            select(Sticker)
            .where(Sticker.owner_id == owner_id)
            .order_by(Sticker.created_at.desc(), Sticker.id.desc())
        )
        return self._read(db, "load stickers", lambda: list(db.scalars(stmt).all()))
    
    def create_sticker(self, db: Session, *, owner_id: str, image_url: str, name: str = "") -> Sticker:
        return self.create(
            db,
            obj_in={"owner_id": owner_id, "image_url": image_url, "name": name or ""},
        )


# Create instance
crud_sticker = CRUDSticker(Sticker)
