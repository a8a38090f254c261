"""Error mapping of the PostgreSQL enrollment and wishlist repos.

The session is faked: flush() raises the IntegrityError a real driver
would, carrying the SQLSTATE the way psycopg2 or asyncpg report it.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from coursehub.core.errors import (
    DuplicateEnrollmentError,
    DuplicateWishlistError,
    PersistenceError,
)
from coursehub.models.enrollment import Enrollment, WishlistEntry
from coursehub.repos.pg_enrollment_repo import PgEnrollmentRepo, PgWishlistRepo
from coursehub.repos.pg_guard import is_unique_violation

UNIQUE = "23505"
FOREIGN_KEY = "23503"


class _DriverError(Exception):
    def __init__(self, message: str, *, pgcode: str | None = None) -> None:
        super().__init__(message)
        self.pgcode = pgcode


class _AsyncpgCause(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(sqlstate)
        self.sqlstate = sqlstate


def _integrity_error(code: str, *, chained: bool = False) -> IntegrityError:
    if chained:
        orig = _DriverError("violates constraint")
        orig.__cause__ = _AsyncpgCause(code)
    else:
        orig = _DriverError("violates constraint", pgcode=code)
    return IntegrityError("INSERT INTO enrollments ...", {}, orig)


class _FailingFlushSession:
    def __init__(self, error: Exception) -> None:
        self._error = error

    @asynccontextmanager
    async def begin_nested(self):
        yield

    def add(self, row) -> None:
        pass

    async def flush(self) -> None:
        raise self._error


def _enrollment() -> Enrollment:
    return Enrollment.new(learner_id="alice", course_id=uuid4(), enrolled_at=1)


def _entry() -> WishlistEntry:
    return WishlistEntry.new(learner_id="alice", course_id=uuid4(), added_at=1)


@pytest.mark.parametrize("chained", [False, True])
def test_unique_violation_is_detected(chained: bool) -> None:
    assert is_unique_violation(_integrity_error(UNIQUE, chained=chained))
    assert not is_unique_violation(_integrity_error(FOREIGN_KEY, chained=chained))


def test_unknown_integrity_error_is_not_a_duplicate() -> None:
    err = IntegrityError("INSERT", {}, Exception("no sqlstate"))
    assert not is_unique_violation(err)


def test_duplicate_enrollment() -> None:
    repo = PgEnrollmentRepo(_FailingFlushSession(_integrity_error(UNIQUE)))
    with pytest.raises(DuplicateEnrollmentError):
        asyncio.run(repo.add(_enrollment()))


def test_enrollment_for_deleted_course_is_a_persistence_error() -> None:
    repo = PgEnrollmentRepo(
        _FailingFlushSession(_integrity_error(FOREIGN_KEY, chained=True))
    )
    with pytest.raises(PersistenceError) as exc:
        asyncio.run(repo.add(_enrollment()))
    assert exc.value.operation == "add_enrollment"


def test_duplicate_wishlist_entry() -> None:
    repo = PgWishlistRepo(_FailingFlushSession(_integrity_error(UNIQUE, chained=True)))
    with pytest.raises(DuplicateWishlistError):
        asyncio.run(repo.add(_entry()))


def test_wishlist_for_deleted_course_is_a_persistence_error() -> None:
    repo = PgWishlistRepo(_FailingFlushSession(_integrity_error(FOREIGN_KEY)))
    with pytest.raises(PersistenceError) as exc:
        asyncio.run(repo.add(_entry()))
    assert exc.value.operation == "add_wishlist"
