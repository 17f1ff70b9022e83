"""Generic CRUD base class for SQLAlchemy models."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import TransportError
from app.database import Base


logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)
T = TypeVar("T")


class CRUDBase(Generic[ModelType]):
	"""Reusable CRUD helper for SQLAlchemy models.

	All methods operate on model instances and return database objects, not schemas.
	Read and write failures are rolled back and re-raised as ``TransportError``.
	"""

	def __init__(self, model: Type[ModelType]):
		self.model = model

	# ----- Read -----
	def get(self, db: Session, id: Any) -> Optional[ModelType]:
		"""Get one record by primary key."""
		return self._read(db, f"load {self.model.__name__.lower()}", lambda: db.get(self.model, id))

	def _read(self, db: Session, action: str, query: Callable[[], T]) -> T:
		try:
			return query()
		except SQLAlchemyError as e:
			db.rollback()
			logger.error(f"Failed to {action}: {e}")
			raise TransportError(f"Could not {action}") from e

	# ----- Write helpers -----
	def _commit(self, db: Session, action: str) -> None:
		try:
			db.commit()
		except SQLAlchemyError as e:
			db.rollback()
			logger.error(f"Failed to {action} {self.model.__name__}: {e}")
			raise TransportError(f"Could not {action} {self.model.__name__.lower()}") from e

	# ----- Create -----
	def create(self, db: Session, *, obj_in: Dict[str, Any]) -> ModelType:
		"""Create a new record from a dict of column values."""
		db_obj = self.model(**obj_in)  # type: ignore[arg-type]
		db.add(db_obj)
		self._commit(db, "create")
		db.refresh(db_obj)
		return db_obj

	# ----- Delete -----
	def delete(self, db: Session, *, id: Any) -> Optional[ModelType]:
		"""Hard delete a record. Returns the deleted object (or None if not found)."""
		db_obj = self.get(db, id)
		if not db_obj:
			return None
		db.delete(db_obj)
		self._commit(db, "delete")
		return db_obj
