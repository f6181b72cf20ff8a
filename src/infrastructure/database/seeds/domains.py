# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behavioural domain seed data.

Seeds the fixed set of behavioural domains from the policy reference data.
Existing domains are updated in place so reseeding is idempotent.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.policy import BEHAVIORAL_DOMAINS, DomainDefinition
from src.infrastructure.database.models.intervention import BehavioralDomain

logger = logging.getLogger(__name__)


async def seed_behavioral_domains(
    session: AsyncSession,
    definitions: tuple[DomainDefinition, ...] = BEHAVIORAL_DOMAINS,
) -> list[BehavioralDomain]:
    """Insert or update the behavioural domains.

    Args:
        session: Database session.
        definitions: Domain definitions to seed.

    Returns:
        The seeded domains in definition order.
    """
    result = await session.execute(select(BehavioralDomain))
    existing = {domain.domain_key: domain for domain in result.scalars().all()}

    seeded: list[BehavioralDomain] = []
    created = 0
    for definition in definitions:
        domain = existing.get(definition.key)
        if domain is None:
            domain = BehavioralDomain(domain_key=definition.key)
            session.add(domain)
            created += 1
        domain.domain_name = definition.name
        domain.description = definition.description
        domain.expectations = list(definition.expectations)
        domain.repair_menu_immediate = list(definition.repair_menu_immediate)
        domain.repair_menu_restorative = list(definition.repair_menu_restorative)
        domain.is_active = True
        seeded.append(domain)

    await session.flush()
    logger.info("Seeded behavioural domains: %d created, %d updated", created, len(seeded) - created)
    return seeded
