"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import UserProgressRow
from coursehub.models.progress import ProgressRecord
from coursehub.repos.pg_guard import guarded


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, learner_id: str, video_id: UUID) -> ProgressRecord | None:
        async with guarded(self._session, "get_progress_record"):
            stmt = select(UserProgressRow).where(
                UserProgressRow.user_id == learner_id,
                UserProgressRow.video_id == video_id,
            )
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def get_completed_video_ids(self, learner_id: str) -> frozenset[UUID]:
        async with guarded(self._session, "get_completed_video_ids"):
            stmt = select(UserProgressRow.video_id).where(
                UserProgressRow.user_id == learner_id,
                UserProgressRow.completed.is_(True),
            )
            ids = (await self._session.execute(stmt)).scalars().all()
        return frozenset(ids)

    async def upsert(
        self,
        learner_id: str,
        video_id: UUID,
        *,
        completed: bool,
        completed_at: int | None,
    ) -> ProgressRecord:
        completed_at = completed_at if completed else None
        stmt = (
            pg_insert(UserProgressRow)
            .values(
                id=uuid4(),
                user_id=learner_id,
                video_id=video_id,
                completed=completed,
                completed_at=completed_at,
            )
            .on_conflict_do_update(
                index_elements=["user_id", "video_id"],
                set_={"completed": completed, "completed_at": completed_at},
            )
            .returning(UserProgressRow.id)
        )
        async with guarded(self._session, "upsert_progress_record"):
            record_id = (await self._session.execute(stmt)).scalar_one()
        return ProgressRecord(
            id=record_id,
            learner_id=learner_id,
            video_id=video_id,
            completed=completed,
            completed_at=completed_at,
        )

    async def delete(self, learner_id: str, video_id: UUID) -> bool:
        async with guarded(self._session, "delete_progress_record"):
            stmt = delete(UserProgressRow).where(
                UserProgressRow.user_id == learner_id,
                UserProgressRow.video_id == video_id,
            )
            result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete_for_videos(self, video_ids: Iterable[UUID]) -> int:
        ids = list(video_ids)
        if not ids:
            return 0
        async with guarded(self._session, "delete_progress_for_videos"):
            stmt = delete(UserProgressRow).where(UserProgressRow.video_id.in_(ids))
            result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_record(row: UserProgressRow) -> ProgressRecord:
    return ProgressRecord(
        id=row.id,
        learner_id=row.user_id,
        video_id=row.video_id,
        completed=bool(row.completed),
        completed_at=row.completed_at,
    )
