"""
Operation-scoped database sessions.

Provides lazy session acquisition that releases connections immediately
after each operation, so no connection is held while we wait on Stripe.

Usage:
    # Single operation - acquires, commits and releases immediately
    async with get_session() as session:
        result = await session.execute(query)

    # Multiple operations in a transaction - share one session
    async with transaction():
        await repo.compare_and_update(...)
        await event_repo.record(...)
    # Commits together, then releases

See also:
    - common/db/context.py: ContextVar plumbing and @readonly
    - common/db/session.py: engine and request-scoped sessions (get_db)
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
    is_readonly_forced,
)

logger = get_logger(__name__)


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    All DB operations inside share one session/connection.
    Commits on success (unless readonly), rolls back on exception.

    Raises:
        Exception: Re-raises any exception after rollback
    """
    effective_readonly = readonly or is_readonly_forced()
    session_factory = (
        AsyncSessionLocalReadonly if effective_readonly else AsyncSessionLocal
    )

    start = time.perf_counter()
    async with session_factory() as session:
        acquire_time = time.perf_counter() - start
        logger.debug(
            f"Transaction session acquire: {acquire_time * 1000:.2f}ms, readonly={effective_readonly}"
        )

        token = set_current_session(session, readonly=effective_readonly)
        try:
            yield session
            if not effective_readonly:
                await session.commit()
        except Exception as e:
            logger.warning(f"Transaction rollback due to: {e!r}")
            await session.rollback()
            raise
        finally:
            reset_current_session(token, readonly=effective_readonly)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a session for a single DB operation.

    Reuses the session of an enclosing ``transaction()`` (which then owns the
    commit); otherwise acquires a new session, commits and releases it.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)

    if existing:
        yield existing
    else:
        session_factory = (
            AsyncSessionLocalReadonly if effective_readonly else AsyncSessionLocal
        )

        async with session_factory() as session:
            try:
                yield session
                if not effective_readonly:
                    commit_start = time.perf_counter()
                    await session.commit()
                    commit_time = time.perf_counter() - commit_start
                    logger.debug(f"Operation commit: {commit_time * 1000:.2f}ms")
            except Exception as e:
                logger.warning(f"Operation rollback due to: {e!r}")
                await session.rollback()
                raise
