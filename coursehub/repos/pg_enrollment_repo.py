"""PostgreSQL implementations of EnrollmentRepo and WishlistRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.core.errors import (
    DuplicateEnrollmentError,
    DuplicateWishlistError,
    PersistenceError,
)
from coursehub.db.tables import EnrollmentRow, WishlistRow
from coursehub.models.enrollment import Enrollment, WishlistEntry
from coursehub.repos.pg_guard import guarded, is_unique_violation


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, learner_id: str, course_id: UUID) -> Enrollment | None:
        async with guarded(self._session, "get_enrollment"):
            stmt = select(EnrollmentRow).where(
                EnrollmentRow.user_id == learner_id,
                EnrollmentRow.course_id == course_id,
            )
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def add(self, enrollment: Enrollment) -> Enrollment:
        try:
            async with self._session.begin_nested():
                self._session.add(
                    EnrollmentRow(
                        id=enrollment.id,
                        user_id=enrollment.learner_id,
                        course_id=enrollment.course_id,
                        progress=enrollment.progress,
                        enrolled_at=enrollment.enrolled_at,
                    )
                )
                await self._session.flush()
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise PersistenceError("add_enrollment", str(e.orig)) from e
            raise DuplicateEnrollmentError(str(e.orig)) from e
        except SQLAlchemyError as e:
            raise PersistenceError("add_enrollment", str(e)) from e
        return enrollment

    async def update_progress(
        self, learner_id: str, course_id: UUID, progress: int
    ) -> Enrollment | None:
        async with guarded(self._session, "update_enrollment_progress"):
            stmt = (
                update(EnrollmentRow)
                .where(
                    EnrollmentRow.user_id == learner_id,
                    EnrollmentRow.course_id == course_id,
                )
                .values(progress=progress)
            )
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(learner_id, course_id)

    async def list_by_learner(self, learner_id: str) -> list[Enrollment]:
        async with guarded(self._session, "list_enrollments"):
            stmt = (
                select(EnrollmentRow)
                .where(EnrollmentRow.user_id == learner_id)
                .order_by(EnrollmentRow.enrolled_at.desc())
            )
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_all(self) -> list[Enrollment]:
        async with guarded(self._session, "list_all_enrollments"):
            rows = (await self._session.execute(select(EnrollmentRow))).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def count_by_course(self, course_id: UUID) -> int:
        async with guarded(self._session, "count_enrollments"):
            stmt = (
                select(func.count())
                .select_from(EnrollmentRow)
                .where(EnrollmentRow.course_id == course_id)
            )
            count = (await self._session.execute(stmt)).scalar_one()
        return int(count)

    async def delete_for_course(self, course_id: UUID) -> int:
        async with guarded(self._session, "delete_enrollments_for_course"):
            stmt = delete(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
            result = await self._session.execute(stmt)
        return result.rowcount


class PgWishlistRepo:
    """Satisfies the WishlistRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, learner_id: str, course_id: UUID) -> WishlistEntry | None:
        async with guarded(self._session, "get_wishlist_entry"):
            stmt = select(WishlistRow).where(
                WishlistRow.user_id == learner_id,
                WishlistRow.course_id == course_id,
            )
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_entry(row)

    async def add(self, entry: WishlistEntry) -> WishlistEntry:
        try:
            async with self._session.begin_nested():
                self._session.add(
                    WishlistRow(
                        id=entry.id,
                        user_id=entry.learner_id,
                        course_id=entry.course_id,
                        added_at=entry.added_at,
                    )
                )
                await self._session.flush()
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise PersistenceError("add_wishlist", str(e.orig)) from e
            raise DuplicateWishlistError(str(e.orig)) from e
        except SQLAlchemyError as e:
            raise PersistenceError("add_wishlist", str(e)) from e
        return entry

    async def remove(self, learner_id: str, course_id: UUID) -> bool:
        async with guarded(self._session, "remove_wishlist_entry"):
            stmt = delete(WishlistRow).where(
                WishlistRow.user_id == learner_id,
                WishlistRow.course_id == course_id,
            )
            result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_by_learner(self, learner_id: str) -> list[WishlistEntry]:
        async with guarded(self._session, "list_wishlist"):
            stmt = (
                select(WishlistRow)
                .where(WishlistRow.user_id == learner_id)
                .order_by(WishlistRow.added_at.desc())
            )
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_entry(r) for r in rows]

    async def delete_for_course(self, course_id: UUID) -> int:
        async with guarded(self._session, "delete_wishlist_for_course"):
            stmt = delete(WishlistRow).where(WishlistRow.course_id == course_id)
            result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        learner_id=row.user_id,
        course_id=row.course_id,
        progress=row.progress or 0,
        enrolled_at=row.enrolled_at,
    )


def _row_to_entry(row: WishlistRow) -> WishlistEntry:
    return WishlistEntry(
        id=row.id,
        learner_id=row.user_id,
        course_id=row.course_id,
        added_at=row.added_at,
    )
