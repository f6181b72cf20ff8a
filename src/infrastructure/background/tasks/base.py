# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base utilities for Dramatiq tasks.

Thread-Local Event Loop Management:
    Dramatiq workers use multiple threads (--threads N) to process tasks
    concurrently. SQLAlchemy async engines and asyncpg connections are
    bound to specific event loops and cannot be used across different loops.

    This module keeps one persistent event loop per worker thread and one
    database engine per loop, so connections always stay bound to the loop
    that created them.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import get_settings
from src.infrastructure.database.connection import (
    create_engine_from_settings,
    create_sessionmaker,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Thread-local storage for event loops and database sessionmakers
_thread_local = threading.local()


def _clear_thread_db_connections() -> None:
    """Forget the engine bound to this thread's previous event loop."""
    _thread_local.engine = None
    _thread_local.sessionmaker = None


def _get_thread_event_loop() -> asyncio.AbstractEventLoop:
    """Get or create a persistent event loop for the current thread.

    When a new loop is created (first task in thread or after loop closure),
    any cached database connections are cleared to prevent stale references.
    """
    loop = getattr(_thread_local, "event_loop", None)

    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.event_loop = loop

        _clear_thread_db_connections()

        logger.debug(
            "Created new event loop for thread %s",
            threading.current_thread().name,
        )

    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run async coroutine in sync Dramatiq worker context.

    Args:
        coro: Coroutine to run.

    Returns:
        Result of coroutine.

    Example:
        @dramatiq.actor
        def my_task(student_id: str):
            async def _process():
                async with worker_session() as session:
                    ...
            return run_async(_process())
    """
    loop = _get_thread_event_loop()
    return loop.run_until_complete(coro)


@asynccontextmanager
async def worker_session() -> AsyncIterator[AsyncSession]:
    """Session on this thread's database engine.

    Rolls back and re-raises on error.
    """
    sessionmaker = getattr(_thread_local, "sessionmaker", None)
    if sessionmaker is None:
        engine = create_engine_from_settings(get_settings())
        sessionmaker = create_sessionmaker(engine)
        _thread_local.engine = engine
        _thread_local.sessionmaker = sessionmaker

    async with sessionmaker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
