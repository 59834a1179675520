"""
API key repository.
"""

import uuid
from typing import List

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from salescoach.db.repositories.base import BaseRepository
from salescoach.models.db import ApiKey


class ApiKeyRepository(BaseRepository[ApiKey]):
    """Repository for ApiKey model."""

    def __init__(self, session: Session):
        super().__init__(ApiKey, session)

    def get_active_by_profile(self, profile_id: uuid.UUID) -> List[ApiKey]:
        """Get a profile's active keys ordered by service name."""
        return (
            self.session.query(ApiKey)
            .filter(ApiKey.profile_id == profile_id, ApiKey.is_active == True)
            .order_by(ApiKey.service)
            .all()
        )

    def upsert(
        self,
        profile_id: uuid.UUID,
        service: str,
        encrypted_key: str,
        key_hash: str,
    ) -> None:
        """
        Store the key for (profile, service), replacing any previous one.

        Args:
            profile_id: Owning profile UUID
            service: Provider name (e.g. "openai", "elevenlabs")
            encrypted_key: Ciphertext produced by ``salescoach.crypto``
            key_hash: SHA-256 of the plaintext key
        """
        values = {
            "encrypted_key": encrypted_key,
            "key_hash": key_hash,
            "is_active": True,
        }
        stmt = (
            self._insert()
            .values(id=uuid.uuid4(), profile_id=profile_id, service=service, **values)
            .on_conflict_do_update(
                index_elements=["profile_id", "service"],
                set_={**values, "updated_at": func.now()},
            )
        )
        self.session.execute(stmt)
        self.session.flush()
