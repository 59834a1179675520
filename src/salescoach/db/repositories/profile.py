"""
Profile repository.

Demo usage counters are only ever changed through the single-statement
increments below; application code never reads a counter and writes back
a computed value.
"""

import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session

from salescoach.db.repositories.base import BaseRepository
from salescoach.models.db import Profile


class ProfileRepository(BaseRepository[Profile]):
    """Repository for Profile model."""

    def __init__(self, session: Session):
        super().__init__(Profile, session)

    def get_by_auth_id(self, auth_id: str) -> Optional[Profile]:
        """
        Get profile by the auth provider's user id.

        Args:
            auth_id: External auth user id

        Returns:
            Profile instance or None
        """
        return self.session.query(Profile).filter(Profile.auth_id == auth_id).first()

    def insert_if_absent(self, auth_id: str, **fields: Any) -> tuple[Profile, bool]:
        """
        Insert a profile unless one already exists for ``auth_id``.

        The unique constraint on auth_id is the guarantee; concurrent
        callers get the same row back and only one sees ``created=True``.

        Args:
            auth_id: External auth user id
            **fields: Remaining profile columns

        Returns:
            Tuple of (profile, created)
        """
        new_id = uuid.uuid4()
        stmt = (
            self._insert()
            .values(id=new_id, auth_id=auth_id, **fields)
            .on_conflict_do_nothing(index_elements=["auth_id"])
        )
        self.session.execute(stmt)
        self.session.flush()

        profile = self.get_by_auth_id(auth_id)
        if profile is None:
            raise RuntimeError(f"Profile creation/fetch failed for auth_id={auth_id}")
        return profile, profile.id == new_id

    def increment_demo_sessions(self, profile_id: uuid.UUID, max_sessions: int) -> bool:
        """
        Atomically consume one demo session if the profile is under the limit.

        Executes a single conditional UPDATE, so two concurrent callers that
        both observed ``demo_sessions_used == 0`` cannot both succeed.

        Args:
            profile_id: Profile UUID
            max_sessions: Session quota

        Returns:
            True if the counter was incremented
        """
        updated = (
            self.session.query(Profile)
            .filter(
                Profile.id == profile_id,
                Profile.demo_sessions_used < max_sessions,
            )
            .update(
                {Profile.demo_sessions_used: Profile.demo_sessions_used + 1},
                synchronize_session=False,
            )
        )
        self.session.flush()
        self._expire_cached(profile_id)
        return updated == 1

    def increment_demo_minutes(self, profile_id: uuid.UUID, minutes: float) -> None:
        """
        Atomically add fractional minutes to a profile's demo usage.

        Args:
            profile_id: Profile UUID
            minutes: Minutes to add (non-negative)
        """
        if minutes < 0:
            raise ValueError("minutes must be non-negative")

        self.session.query(Profile).filter(Profile.id == profile_id).update(
            {Profile.demo_minutes_used: Profile.demo_minutes_used + minutes},
            synchronize_session=False,
        )
        self.session.flush()
        self._expire_cached(profile_id)
