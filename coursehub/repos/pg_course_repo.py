"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coursehub.db.tables import CourseModuleRow, CourseRow, ModuleVideoRow
from coursehub.models.course import Course, Difficulty, Module, ModuleTree, Video
from coursehub.models.draft import CourseFields
from coursehub.repos.pg_guard import guarded


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- courses ---

    async def get_course(self, course_id: UUID) -> Course | None:
        async with guarded(self._session, "get_course"):
            stmt = select(CourseRow).where(CourseRow.id == course_id)
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_course(row)

    async def list_courses(self) -> list[Course]:
        async with guarded(self._session, "list_courses"):
            stmt = select(CourseRow).order_by(CourseRow.created_at.desc())
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def add_course(self, course: Course) -> Course:
        async with guarded(self._session, "add_course"):
            self._session.add(
                CourseRow(
                    id=course.id,
                    title=course.title,
                    description=course.description,
                    instructor=course.instructor,
                    difficulty=course.difficulty.value,
                    price=course.price,
                    duration=course.duration,
                    thumbnail=course.thumbnail,
                    category=course.category,
                    enrollment_count=course.enrollment_count,
                    created_at=course.created_at,
                    updated_at=course.updated_at,
                )
            )
            await self._session.flush()
        return course

    async def update_course(
        self, course_id: UUID, fields: CourseFields, updated_at: int
    ) -> Course | None:
        async with guarded(self._session, "update_course"):
            stmt = (
                update(CourseRow)
                .where(CourseRow.id == course_id)
                .values(
                    title=fields.title,
                    description=fields.description,
                    instructor=fields.instructor,
                    difficulty=fields.difficulty.value,
                    price=fields.price,
                    duration=fields.duration,
                    thumbnail=fields.thumbnail,
                    category=fields.category,
                    updated_at=updated_at,
                )
            )
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_course(course_id)

    async def set_enrollment_count(self, course_id: UUID, count: int) -> None:
        async with guarded(self._session, "set_enrollment_count"):
            stmt = (
                update(CourseRow)
                .where(CourseRow.id == course_id)
                .values(enrollment_count=count)
            )
            await self._session.execute(stmt)

    async def delete_course(self, course_id: UUID) -> bool:
        async with guarded(self._session, "delete_course"):
            stmt = delete(CourseRow).where(CourseRow.id == course_id)
            result = await self._session.execute(stmt)
        return result.rowcount > 0

    # --- hierarchy reads ---

    async def list_modules_with_videos(self, course_id: UUID) -> list[ModuleTree]:
        async with guarded(self._session, "list_modules_with_videos"):
            stmt = (
                select(CourseModuleRow)
                .where(CourseModuleRow.course_id == course_id)
                .options(selectinload(CourseModuleRow.videos))
                .order_by(CourseModuleRow.order_index)
            )
            rows = (await self._session.execute(stmt)).scalars().all()
        return [
            ModuleTree(
                module=_row_to_module(r),
                videos=tuple(_row_to_video(v) for v in r.videos),
            )
            for r in rows
        ]

    async def list_modules(self, course_id: UUID) -> list[Module]:
        async with guarded(self._session, "list_modules"):
            stmt = (
                select(CourseModuleRow)
                .where(CourseModuleRow.course_id == course_id)
                .order_by(CourseModuleRow.order_index)
            )
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_module(r) for r in rows]

    async def list_videos(self, module_id: UUID) -> list[Video]:
        async with guarded(self._session, "list_videos"):
            stmt = (
                select(ModuleVideoRow)
                .where(ModuleVideoRow.module_id == module_id)
                .order_by(ModuleVideoRow.order_index)
            )
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_video(r) for r in rows]

    # --- modules ---

    async def create_module(
        self, *, course_id: UUID, title: str, description: str, order_index: int
    ) -> Module:
        row = CourseModuleRow(
            id=uuid4(),
            course_id=course_id,
            title=title,
            description=description,
            order_index=order_index,
        )
        async with guarded(self._session, "create_module"):
            self._session.add(row)
            await self._session.flush()
        return _row_to_module(row)

    async def update_module(
        self, module_id: UUID, *, title: str, description: str, order_index: int
    ) -> Module | None:
        async with guarded(self._session, "update_module"):
            stmt = (
                update(CourseModuleRow)
                .where(CourseModuleRow.id == module_id)
                .values(title=title, description=description, order_index=order_index)
            )
            result = await self._session.execute(stmt)
            if result.rowcount == 0:
                return None
            row = (
                await self._session.execute(
                    select(CourseModuleRow).where(CourseModuleRow.id == module_id)
                )
            ).scalar_one()
        return _row_to_module(row)

    async def delete_module(self, module_id: UUID) -> bool:
        async with guarded(self._session, "delete_module"):
            stmt = delete(CourseModuleRow).where(CourseModuleRow.id == module_id)
            result = await self._session.execute(stmt)
        return result.rowcount > 0

    # --- videos ---

    async def create_video(
        self,
        *,
        module_id: UUID,
        title: str,
        video_url: str,
        duration: str,
        order_index: int,
    ) -> Video:
        row = ModuleVideoRow(
            id=uuid4(),
            module_id=module_id,
            title=title,
            video_url=video_url,
            duration=duration,
            order_index=order_index,
        )
        async with guarded(self._session, "create_video"):
            self._session.add(row)
            await self._session.flush()
        return _row_to_video(row)

    async def update_video(
        self,
        video_id: UUID,
        *,
        module_id: UUID,
        title: str,
        video_url: str,
        duration: str,
        order_index: int,
    ) -> Video | None:
        async with guarded(self._session, "update_video"):
            stmt = (
                update(ModuleVideoRow)
                .where(ModuleVideoRow.id == video_id)
                .values(
                    module_id=module_id,
                    title=title,
                    video_url=video_url,
                    duration=duration,
                    order_index=order_index,
                )
            )
            result = await self._session.execute(stmt)
            if result.rowcount == 0:
                return None
            row = (
                await self._session.execute(
                    select(ModuleVideoRow).where(ModuleVideoRow.id == video_id)
                )
            ).scalar_one()
        return _row_to_video(row)

    async def delete_video(self, video_id: UUID) -> bool:
        async with guarded(self._session, "delete_video"):
            stmt = delete(ModuleVideoRow).where(ModuleVideoRow.id == video_id)
            result = await self._session.execute(stmt)
        return result.rowcount > 0


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        description=row.description or "",
        instructor=row.instructor,
        difficulty=Difficulty(row.difficulty),
        price=row.price,
        duration=row.duration or "",
        thumbnail=row.thumbnail or "",
        category=row.category or "",
        enrollment_count=row.enrollment_count or 0,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_module(row: CourseModuleRow) -> Module:
    return Module(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        description=row.description or "",
        order_index=row.order_index,
    )


def _row_to_video(row: ModuleVideoRow) -> Video:
    return Video(
        id=row.id,
        module_id=row.module_id,
        title=row.title,
        video_url=row.video_url,
        duration=row.duration or "",
        order_index=row.order_index,
    )
