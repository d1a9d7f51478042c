"""
Database initialization and session management.

This module provides functions for:
1. Initializing the async engine and schema
2. Handing out the session factory
3. Closing the engine on shutdown
"""

from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from edudash.common.error_handling import DatabaseError
from edudash.common.logger import app_logger
from edudash.database.base import Base

# Setup module logger
logger = app_logger.getChild("database.session")

# Process-wide engine and session factory, set by initialize_database
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine_kwargs(database_url: str, echo: bool = False) -> Dict[str, Any]:
    """
    Get engine keyword arguments based on database type.

    In-memory SQLite needs a single shared connection.
    """
    kwargs: Dict[str, Any] = {"echo": echo}

    if database_url.startswith("postgresql"):
        kwargs.update({
            "pool_size": 5,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        })
    elif database_url.startswith("sqlite") and ":memory:" in database_url:
        kwargs.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })

    return kwargs


async def initialize_database(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Initialize the async database engine and create missing tables.

    Args:
        database_url: Database connection URL
        echo: Whether to echo SQL statements

    Returns:
        AsyncEngine instance
    """
    global _engine, _session_factory

    # Register the record classes on the metadata
    from edudash.database import models  # noqa: F401

    logger.info(f"Initializing database with URL: {database_url[:10]}...")
    _engine = create_async_engine(database_url, **get_engine_kwargs(database_url, echo))
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)

    async with _engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database engine initialized successfully")
    return _engine


def get_session_factory() -> async_sessionmaker:
    """
    Get the session factory of the initialized engine.

    Raises:
        DatabaseError: If initialize_database has not run
    """
    if _session_factory is None:
        raise DatabaseError("Database engine not initialized. Call initialize_database() first.")
    return _session_factory


async def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine closed successfully")
