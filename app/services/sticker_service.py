"""Sticker library management."""

import logging
from typing import List

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, PermissionDeniedError, TransportError
from app.crud import crud_sticker
from app.models.sticker import Sticker
from app.utils.file_handler import delete_media, store_media

logger = logging.getLogger(__name__)


class StickerService:
    def list_stickers(self, db: Session, *, owner_id: str) -> List[Sticker]:
        return crud_sticker.get_by_owner(db, owner_id=owner_id)

    def create_sticker(
        self,
        db: Session,
        *,
        owner_id: str,
        file_content: bytes,
        filename: str,
        name: str = "",
    ) -> Sticker:
        """Upload the image, then record the sticker. Upload failure creates nothing."""
        image_url = store_media(file_content, filename, "sticker")
        try:
            sticker = crud_sticker.create_sticker(db, owner_id=owner_id, image_url=image_url, name=name.strip())
        except TransportError:
            delete_media(image_url)
            raise
        logger.info(f"[STICKER] {owner_id} added sticker {sticker.id}")
        return sticker

    def delete_sticker(self, db: Session, *, owner_id: str, sticker_id: int) -> None:
        """Delete from the owner's library. Messages already sent keep their copy."""
        sticker = crud_sticker.get(db, sticker_id)
        if sticker is None:
            raise NotFoundError("Sticker not found")
        if sticker.owner_id != owner_id:
            raise PermissionDeniedError("You can only delete your own stickers")
        crud_sticker.delete(db, id=sticker_id)
        logger.info(f"[STICKER] {owner_id} deleted sticker {sticker_id}")


sticker_service = StickerService()
