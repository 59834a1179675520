"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from salescoach.db.repositories.analysis_result import AnalysisResultRepository
from salescoach.db.repositories.api_key import ApiKeyRepository
from salescoach.db.repositories.base import BaseRepository
from salescoach.db.repositories.company import CompanyRepository
from salescoach.db.repositories.profile import ProfileRepository
from salescoach.db.repositories.subscription import SubscriptionRepository
from salescoach.db.repositories.training_session import TrainingSessionRepository
from salescoach.db.repositories.usage import AuditLogRepository, UsageRepository

__all__ = [
    "AnalysisResultRepository",
    "ApiKeyRepository",
    "AuditLogRepository",
    "BaseRepository",
    "CompanyRepository",
    "ProfileRepository",
    "SubscriptionRepository",
    "TrainingSessionRepository",
    "UsageRepository",
]
