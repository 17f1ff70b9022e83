"""CRUD operations package - exports singleton instances for all models."""

from .base import CRUDBase
from .message import crud_message
from .sticker import crud_sticker
from .profile import crud_profile


__all__ = [
    # Base
    "CRUDBase",
    # CRUD instances
    "crud_message",
    "crud_sticker",
    "crud_profile",
]
