from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.core.errors import DuplicateEnrollmentError
from coursehub.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def get(self, learner_id: str, course_id: UUID) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> Enrollment: ...
    async def update_progress(
        self, learner_id: str, course_id: UUID, progress: int
    ) -> Enrollment | None: ...
    async def list_by_learner(self, learner_id: str) -> list[Enrollment]: ...
    async def list_all(self) -> list[Enrollment]: ...
    async def count_by_course(self, course_id: UUID) -> int: ...
    async def delete_for_course(self, course_id: UUID) -> int: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, UUID], Enrollment] = {}

    async def get(self, learner_id: str, course_id: UUID) -> Enrollment | None:
        return self._store.get((learner_id, course_id))

    async def add(self, enrollment: Enrollment) -> Enrollment:
        key = (enrollment.learner_id, enrollment.course_id)
        if key in self._store:
            raise DuplicateEnrollmentError(
                f"{enrollment.learner_id} already enrolled in {enrollment.course_id}"
            )
        self._store[key] = enrollment
        return enrollment

    async def update_progress(
        self, learner_id: str, course_id: UUID, progress: int
    ) -> Enrollment | None:
        key = (learner_id, course_id)
        existing = self._store.get(key)
        if existing is None:
            return None
        updated = replace(existing, progress=progress)
        self._store[key] = updated
        return updated

    async def list_by_learner(self, learner_id: str) -> list[Enrollment]:
        rows = [e for e in self._store.values() if e.learner_id == learner_id]
        return sorted(rows, key=lambda e: e.enrolled_at, reverse=True)

    async def list_all(self) -> list[Enrollment]:
        return list(self._store.values())

    async def count_by_course(self, course_id: UUID) -> int:
        return sum(1 for e in self._store.values() if e.course_id == course_id)

    async def delete_for_course(self, course_id: UUID) -> int:
        keys = [k for k in self._store if k[1] == course_id]
        for k in keys:
            del self._store[k]
        return len(keys)
