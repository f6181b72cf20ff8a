# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions
- Get the intervention policy
- Guard the cron-triggered endpoints

Example:
    @router.get("/level-a")
    async def list_level_a(db: DB, policy: Policy):
        ...
"""

import hmac
import logging
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import get_policy, get_settings
from src.core.config.policy import InterventionPolicy
from src.infrastructure.database.connection import get_session

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session.

    Yields:
        AsyncSession for the request.
    """
    async with get_session() as session:
        yield session


def get_intervention_policy() -> InterventionPolicy:
    """Get the intervention policy."""
    return get_policy()


async def verify_cron_secret(request: Request) -> None:
    """Require the cron bearer token when one is configured.

    Args:
        request: Incoming request.

    Raises:
        HTTPException: 401 if the Authorization header does not carry the secret.
    """
    secret = get_settings().api.cron_secret
    if secret is None:
        return

    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    expected = secret.get_secret_value()
    if scheme.lower() != "bearer" or not hmac.compare_digest(token, expected):
        logger.warning("Rejected cron request to %s", request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


# Type aliases for dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
Policy = Annotated[InterventionPolicy, Depends(get_intervention_policy)]
CronAuth = Depends(verify_cron_secret)
