"""
Usage and audit log repositories.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from salescoach.db.repositories.base import BaseRepository
from salescoach.models.db import AuditLog, UsageRecord


class UsageRepository(BaseRepository[UsageRecord]):
    """Repository for UsageRecord model."""

    def __init__(self, session: Session):
        super().__init__(UsageRecord, session)

    def record(
        self,
        profile_id: uuid.UUID,
        minutes_used: float,
        session_id: Optional[uuid.UUID] = None,
    ) -> UsageRecord:
        """Append a usage row for a finalized session."""
        return self.create(
            profile_id=profile_id, session_id=session_id, minutes_used=minutes_used
        )

    def total_minutes_since(self, profile_id: uuid.UUID, since: datetime) -> float:
        """Sum of minutes a profile used at or after ``since``."""
        total = (
            self.session.query(func.sum(UsageRecord.minutes_used))
            .filter(
                UsageRecord.profile_id == profile_id,
                UsageRecord.created_at >= since,
            )
            .scalar()
        )
        return float(total or 0.0)


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for AuditLog model."""

    def __init__(self, session: Session):
        super().__init__(AuditLog, session)

    def log(
        self,
        event_type: str,
        resource: str,
        action: str,
        user_id: Optional[str] = None,
        company_id: Optional[uuid.UUID] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        """Append an audit entry."""
        return self.create(
            user_id=user_id,
            company_id=company_id,
            event_type=event_type,
            resource=resource,
            action=action,
            details=details or {},
        )
