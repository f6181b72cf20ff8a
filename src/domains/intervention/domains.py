# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behavioural domain lookups."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.intervention.exceptions import InterventionValidationError
from src.infrastructure.database.models.intervention import BehavioralDomain


class BehavioralDomainService:
    """Read access to behavioural domains.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_domains(self, active_only: bool = True) -> list[BehavioralDomain]:
        query = select(BehavioralDomain).order_by(BehavioralDomain.id)
        if active_only:
            query = query.where(BehavioralDomain.is_active.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_domain(self, domain_id: int) -> BehavioralDomain | None:
        return await self.db.get(BehavioralDomain, domain_id)

    async def get_by_key(self, domain_key: str) -> BehavioralDomain | None:
        query = select(BehavioralDomain).where(BehavioralDomain.domain_key == domain_key)
        return (await self.db.execute(query)).scalar_one_or_none()

    async def require_domain(self, domain_id: int) -> BehavioralDomain:
        """Get an active domain or reject the request.

        Raises:
            InterventionValidationError: If the domain does not exist or is inactive.
        """
        domain = await self.get_domain(domain_id)
        if domain is None or not domain.is_active:
            raise InterventionValidationError(f"Unknown behavioural domain {domain_id}")
        return domain

    async def domain_key_map(self) -> dict[int, str]:
        """Map domain IDs to domain keys."""
        result = await self.db.execute(select(BehavioralDomain.id, BehavioralDomain.domain_key))
        return {row.id: row.domain_key for row in result.all()}
