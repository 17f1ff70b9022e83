"""Sticker library endpoints."""

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_db
from app.schemas.sticker import StickerListResponse, StickerResponse
from app.services.sticker_service import sticker_service
from app.utils.file_handler import read_upload_file

router = APIRouter(
    prefix="/stickers",
    tags=["Stickers"],
)


@router.get("", response_model=StickerListResponse)
def list_stickers(
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> StickerListResponse:
    """Your stickers, newest first."""
    stickers = sticker_service.list_stickers(db, owner_id=current_user_id)
    return StickerListResponse(
        stickers=[StickerResponse.model_validate(s) for s in stickers],
        total=len(stickers),
    )


@router.post("", response_model=StickerResponse, status_code=status.HTTP_201_CREATED)
def create_sticker(
    file: UploadFile = File(...),
    name: str = Form("", max_length=100),
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> StickerResponse:
    """
    Upload a new sticker image (jpg/png/gif/webp).

    - **file**: Sticker image
    - **name**: Optional label shown in previews
    """
    file_content, filename = read_upload_file(file)
    sticker = sticker_service.create_sticker(
        db,
        owner_id=current_user_id,
        file_content=file_content,
        filename=filename,
        name=name,
    )
    return StickerResponse.model_validate(sticker)


@router.delete("/{sticker_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sticker(
    sticker_id: int,
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Response:
    """Remove a sticker from your library. Copies already sent are kept."""
    sticker_service.delete_sticker(db, owner_id=current_user_id, sticker_id=sticker_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
