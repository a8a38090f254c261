from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.progress import ProgressRecord


class ProgressRepo(Protocol):
    async def get(self, learner_id: str, video_id: UUID) -> ProgressRecord | None: ...
    async def get_completed_video_ids(self, learner_id: str) -> frozenset[UUID]: ...
    async def upsert(
        self,
        learner_id: str,
        video_id: UUID,
        *,
        completed: bool,
        completed_at: int | None,
    ) -> ProgressRecord: ...
    async def delete(self, learner_id: str, video_id: UUID) -> bool: ...
    async def delete_for_videos(self, video_ids: Iterable[UUID]) -> int: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, UUID], ProgressRecord] = {}

    async def get(self, learner_id: str, video_id: UUID) -> ProgressRecord | None:
        return self._store.get((learner_id, video_id))

    async def get_completed_video_ids(self, learner_id: str) -> frozenset[UUID]:
        return frozenset(
            r.video_id
            for r in self._store.values()
            if r.learner_id == learner_id and r.completed
        )

    async def upsert(
        self,
        learner_id: str,
        video_id: UUID,
        *,
        completed: bool,
        completed_at: int | None,
    ) -> ProgressRecord:
        key = (learner_id, video_id)
        existing = self._store.get(key)
        if existing is None:
            record = ProgressRecord.new(
                learner_id=learner_id,
                video_id=video_id,
                completed=completed,
                completed_at=completed_at,
            )
        else:
            record = replace(
                existing,
                completed=completed,
                completed_at=completed_at if completed else None,
            )
        self._store[key] = record
        return record

    async def delete(self, learner_id: str, video_id: UUID) -> bool:
        return self._store.pop((learner_id, video_id), None) is not None

    async def delete_for_videos(self, video_ids: Iterable[UUID]) -> int:
        doomed = set(video_ids)
        keys = [k for k, r in self._store.items() if r.video_id in doomed]
        for k in keys:
            del self._store[k]
        return len(keys)
