"""
Company repository.
"""

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from salescoach.db.repositories.base import BaseRepository
from salescoach.models.db import Company


class CompanyRepository(BaseRepository[Company]):
    """Repository for Company model."""

    def __init__(self, session: Session):
        super().__init__(Company, session)

    def get_by_name(self, name: str) -> Optional[Company]:
        """
        Get company by exact (case-sensitive) name.

        Args:
            name: Company name

        Returns:
            Company instance or None
        """
        return self.session.query(Company).filter(Company.name == name).first()

    def get_or_create_by_name(
        self, name: str, domain: Optional[str] = None
    ) -> Company:
        """
        Get existing company by name or create a new one (race-safe).

        Uses INSERT ... ON CONFLICT DO NOTHING on the unique name so that
        concurrent registrations for the same company converge on one row.
        A company left behind by a failed profile insert is found here on retry.

        Args:
            name: Company name (already trimmed)
            domain: Email domain recorded on first creation

        Returns:
            Company instance

        Raises:
            RuntimeError: If the company cannot be read back after insert
        """
        company = self.get_by_name(name)
        if company:
            return company

        stmt = (
            self._insert()
            .values(id=uuid.uuid4(), name=name, domain=domain, settings={})
            .on_conflict_do_nothing(index_elements=["name"])
        )
        self.session.execute(stmt)
        self.session.flush()

        company = self.get_by_name(name)
        if not company:
            raise RuntimeError(f"Company creation/fetch failed for name={name!r}")
        return company
