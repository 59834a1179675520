"""
Subscription repository.
"""

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from salescoach.db.repositories.base import BaseRepository
from salescoach.models.db import Subscription


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for Subscription model."""

    def __init__(self, session: Session):
        super().__init__(Subscription, session)

    def get_active(self, profile_id: uuid.UUID) -> Optional[Subscription]:
        """
        Get the newest active subscription for a profile.

        Args:
            profile_id: Profile UUID

        Returns:
            Subscription instance or None
        """
        return (
            self.session.query(Subscription)
            .filter(
                Subscription.profile_id == profile_id,
                Subscription.status == "active",
            )
            .order_by(Subscription.created_at.desc())
            .first()
        )

    def increment_minutes_used(self, subscription_id: uuid.UUID, minutes: float) -> None:
        """Atomically add minutes to a subscription's usage."""
        self.session.query(Subscription).filter(
            Subscription.id == subscription_id
        ).update(
            {Subscription.minutes_used: Subscription.minutes_used + minutes},
            synchronize_session=False,
        )
        self.session.flush()
        self._expire_cached(subscription_id)
