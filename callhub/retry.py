"""
Retry wrapper for database operations.

Pooled connections behind PgBouncer-style poolers occasionally fail with
"prepared statement ... does not exist" (SQLSTATE 26000) or with dropped
connections. ``with_db_retry`` retries such operations a bounded number of
times with exponential backoff, resetting the engine's pool between
attempts. Any other error is raised straight away.

Usage:
    result = await with_db_retry(lambda: session.execute(stmt), session=session)

    @db_retry
    async def close_expired_calls(): ...
"""

from __future__ import annotations

import asyncio
import logging
from functools import wraps
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from callhub.config import DB_RESET_DELAY, DB_RETRY_BASE_DELAY, DB_RETRY_MAX
from callhub.database import async_session, engine, ping

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = DB_RETRY_MAX

PREPARED_STATEMENT_SQLSTATE = "26000"
PREPARED_STATEMENT_MARKERS = ("prepared statement", "statement does not exist")
CONNECTION_MARKERS = ("Connection", "connection", "timeout")


def _sqlstate(error: BaseException) -> Optional[str]:
    """Driver error code, looking through SQLAlchemy's wrapper to the DBAPI error."""
    for candidate in (error, getattr(error, "orig", None)):
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            value = getattr(candidate, attr, None)
            if value:
                return str(value)
    code = getattr(error, "code", None)
    return str(code) if code else None


def is_prepared_statement_error(error: BaseException) -> bool:
    message = str(error)
    if not message:
        return False
    return (
        any(marker in message for marker in PREPARED_STATEMENT_MARKERS)
        or _sqlstate(error) == PREPARED_STATEMENT_SQLSTATE
    )


def is_connection_error(error: BaseException) -> bool:
    message = str(error)
    if not message:
        return False
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True
    return any(marker in message for marker in CONNECTION_MARKERS)


def is_transient_error(error: BaseException) -> bool:
    return is_prepared_statement_error(error) or is_connection_error(error)


def holds_state(session: AsyncSession) -> bool:
    """True once the session has loaded objects or queued changes."""
    return bool(session.new or session.dirty or session.deleted or len(session.identity_map))


async def reset_connection(delay: float = DB_RESET_DELAY) -> None:
    """Drop pooled connections and check that a fresh one works.

    Never raises: a failed reset is logged and the next attempt decides.
    """
    try:
        await engine.dispose()
        await asyncio.sleep(delay)
        await ping()
        logger.info("Database connection reset successfully after error")
    except Exception as e:
        logger.error("Failed to reset database connection: %s", e)
        try:
            await asyncio.sleep(delay * 2)
            await engine.dispose()
            await asyncio.sleep(delay * 2)
        except Exception as inner:
            logger.error("Final connection reset attempt failed: %s", inner)


async def with_db_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    session: Optional[AsyncSession] = None,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    reset: Optional[Callable[[], Awaitable[None]]] = None,
) -> T:
    """
    Await ``operation()`` and return its result, retrying transient errors.

    After retry ``n`` (1-based) the wrapper resets the connection and sleeps
    ``base_delay * 2**n`` seconds. When ``session`` is given it is rolled
    back first so the next attempt starts a clean transaction; a session
    that already holds objects is never rolled back and the error is
    re-raised instead. Once ``max_retries`` is spent the last error is
    re-raised.
    """
    max_retries = MAX_RETRIES if max_retries is None else max_retries
    base_delay = DB_RETRY_BASE_DELAY if base_delay is None else base_delay
    reset = reset or reset_connection

    retries = 0
    while True:
        try:
            return await operation()
        except Exception as error:
            if retries >= max_retries or not is_transient_error(error):
                raise
            if session is not None and holds_state(session):
                # rollback would expire loaded objects and drop pending changes
                logger.warning("Database error mid-transaction, not retrying: %s", error)
                raise

            retries += 1
            logger.warning(
                "Database error detected. Retry %d/%d... (%s)", retries, max_retries, error
            )

            if session is not None:
                try:
                    await session.rollback()
                except SQLAlchemyError as rollback_error:
                    logger.warning("Session rollback before retry failed: %s", rollback_error)

            await reset()
            await asyncio.sleep(base_delay * 2 ** retries)


def db_retry(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Decorator form of ``with_db_retry`` for coroutine functions."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        return await with_db_retry(lambda: func(*args, **kwargs))

    return wrapper


async def run_in_session(work: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run ``work(session)`` with retries, opening a fresh session per attempt."""

    async def attempt() -> T:
        async with async_session() as session:
            return await work(session)

    return await with_db_retry(attempt)
