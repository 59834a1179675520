"""API route modules."""

from salescoach.api.routes import (
    analysis,
    api_keys,
    conversations,
    dashboard,
    profiles,
    sessions,
)

__all__ = [
    "analysis",
    "api_keys",
    "conversations",
    "dashboard",
    "profiles",
    "sessions",
]
