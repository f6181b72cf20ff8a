# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure.

This package provides the SQLAlchemy async connection, ORM models,
migrations and seed data for the interventions store.

Example:
    from src.infrastructure.database import get_session

    async with get_session() as session:
        result = await session.execute(select(LevelCCase))
"""

from src.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    create_engine_from_settings,
    create_sessionmaker,
    enable_sqlite_savepoints,
    get_engine,
    get_session,
    get_sessionmaker,
    init_database,
)

__all__ = [
    "DatabaseError",
    "check_database_connection",
    "close_database",
    "create_engine_from_settings",
    "create_sessionmaker",
    "enable_sqlite_savepoints",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_database",
]
