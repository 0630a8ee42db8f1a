"""
Base repository pattern implementation.

Repositories flush but never commit: the surrounding unit of work
(``get_db`` for HTTP requests, ``session_scope`` for websocket handlers)
owns the transaction, so several writes can land atomically.
"""

from typing import TypeVar, Generic, Optional, Dict, Any, Type
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

# Type variable for generic entity type
T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository operations."""
    pass


class NotFoundError(RepositoryError):
    """Exception raised when entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateError(RepositoryError):
    """Exception raised when attempting to create duplicate entity."""

    def __init__(self, entity_type: str, criteria: Dict[str, Any]):
        super().__init__(f"{entity_type} already exists with criteria: {criteria}")
        self.entity_type = entity_type
        self.criteria = criteria


def _is_unique_violation(error: IntegrityError) -> bool:
    # 23505 is unique_violation in PostgreSQL
    if getattr(error.orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(error.orig).lower()


class BaseRepository(Generic[T]):
    """Common database operations for one mapped model."""

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model

    def get_by_id(self, entity_id: Any) -> T:
        """
        Raises:
            NotFoundError: If entity not found
        """
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise NotFoundError(self.model.__name__, entity_id)
        return entity

    def get_by_id_optional(self, entity_id: Any) -> Optional[T]:
        return self.db.get(self.model, entity_id)

    def find_one_by(self, **criteria) -> Optional[T]:
        query = self.db.query(self.model)
        for key, value in criteria.items():
            query = query.filter(getattr(self.model, key) == value)
        return query.first()

    def create(self, entity: T) -> T:
        """
        Add an entity and flush so generated fields (ids, defaults) are set.

        Raises:
            DuplicateError: If entity violates unique constraints
            RepositoryError: If entity violates any other integrity constraint
        """
        try:
            self.db.add(entity)
            self.db.flush()
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateError(self.model.__name__, self._extract_entity_dict(entity)) from e
            raise RepositoryError(f"Could not create {self.model.__name__}: {e.orig}") from e
        return entity

    def delete(self, entity_id: Any) -> bool:
        entity = self.get_by_id(entity_id)
        self.db.delete(entity)
        self.db.flush()
        return True

    def exists(self, entity_id: Any) -> bool:
        return self.get_by_id_optional(entity_id) is not None

    def _extract_entity_dict(self, entity: T) -> Dict[str, Any]:
        return {
            column.name: getattr(entity, column.key, None)
            for column in entity.__table__.columns
            if getattr(entity, column.key, None) is not None
        }
