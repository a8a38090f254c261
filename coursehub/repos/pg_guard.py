"""Error boundary shared by the PostgreSQL repositories.

Every statement runs inside a SAVEPOINT. A failed statement rolls back
to its savepoint only, so the rest of the request transaction stays
usable; the reconciler relies on this to keep going after one bad item.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.core.errors import PersistenceError


@asynccontextmanager
async def guarded(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    try:
        async with session.begin_nested():
            yield
    except SQLAlchemyError as e:
        raise PersistenceError(operation, str(getattr(e, "orig", None) or e)) from e


UNIQUE_VIOLATION = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """True only for a unique-constraint clash, not FK or CHECK failures.

    psycopg2 exposes the SQLSTATE as ``pgcode``; the asyncpg adapter
    exposes ``sqlstate`` and chains the driver exception as __cause__.
    """
    orig = error.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code is not None:
            return code == UNIQUE_VIOLATION
    return False
