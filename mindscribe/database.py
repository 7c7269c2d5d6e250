# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Async database engine, session factory and declarative base."""
import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all MindScribe models."""


engine: Optional[AsyncEngine] = None
async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, sharing one connection for in-memory SQLite."""
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


async def init_db(database_url: str, echo: bool = False) -> async_sessionmaker[AsyncSession]:
    """Create the engine and session factory, and make sure all tables exist."""
    global engine, async_session_factory

    # Import models so they register with Base.metadata
    from mindscribe.models import database as db_models  # noqa: F401

    engine = create_engine_for_url(database_url, echo=echo)
    async_session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized")
    return async_session_factory


async def close_db() -> None:
    """Dispose of the engine."""
    global engine, async_session_factory
    if engine is not None:
        await engine.dispose()
        logger.info("Database connection closed")
    engine = None
    async_session_factory = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for a single request."""
    if async_session_factory is None:
        raise RuntimeError("Database not initialized")

    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
