"""
shipyard.database.engine — Engine Factory & Thread Bridge
==========================================================

The services are synchronous SQLAlchemy code; each opens its own
``Session(engine)`` and commits explicitly.  The bot reaches them from
the event loop through :func:`run_db`, which moves the call onto a
worker thread.

Startup order::

    engine = create_db_engine()
    init_db(engine)
    credited = await run_db(log_action, engine, cache, user_id, "check-in")
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine

from shipyard.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# A ledger write holds at most one pooled connection for a few queries
POOL_SIZE = 5
POOL_OVERFLOW = 5


def create_db_engine(url: str | None = None) -> Engine:
    """Engine for *url*, defaulting to the ``DATABASE_URL`` environment variable.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is unset.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set; add a PostgreSQL URL to .env "
            "(see .env.example)."
        )

    engine = create_engine(
        url,
        pool_size=POOL_SIZE,
        max_overflow=POOL_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
    logger.info("Database engine ready (host=%s)", engine.url.host)
    return engine


def init_db(engine: Engine) -> None:
    """Create any missing tables, then seed policies and the badge catalogue.

    Alembic owns the production schema; ``create_all`` only fills gaps.
    """
    from shipyard.database.seed import seed_database

    Base.metadata.create_all(engine)
    seed_database(engine)
    logger.info("Schema checked and defaults seeded")


async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await *func* run on a worker thread."""
    return await asyncio.to_thread(func, *args, **kwargs)
