"""
Base repository with generic CRUD operations.
"""

import uuid
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from salescoach.models.db import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic repository providing CRUD operations for a model."""

    def __init__(self, model: Type[ModelType], session: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Database session
        """
        self.model = model
        self.session = session

    def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Model field values

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.session.flush()
        self.session.refresh(instance)
        return instance

    def get(self, id: uuid.UUID) -> Optional[ModelType]:
        """
        Get record by primary key.

        Args:
            id: Record UUID

        Returns:
            Model instance or None
        """
        return self.session.get(self.model, id)

    def count(self) -> int:
        """Count all records."""
        return self.session.query(self.model).count()

    def _insert(self):
        """
        Dialect-specific INSERT supporting ON CONFLICT clauses.

        PostgreSQL in production, SQLite in tests; both expose
        ``on_conflict_do_nothing`` / ``on_conflict_do_update``.
        """
        if self.session.get_bind().dialect.name == "sqlite":
            return sqlite.insert(self.model)
        return postgresql.insert(self.model)

    def _expire_cached(self, id: uuid.UUID) -> None:
        """Expire the identity-map copy of a row changed by a bulk UPDATE."""
        instance = self.session.identity_map.get(
            self.session.identity_key(self.model, id)
        )
        if instance is not None:
            self.session.expire(instance)
