from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.core.errors import DuplicateWishlistError
from coursehub.models.enrollment import WishlistEntry


class WishlistRepo(Protocol):
    async def get(self, learner_id: str, course_id: UUID) -> WishlistEntry | None: ...
    async def add(self, entry: WishlistEntry) -> WishlistEntry: ...
    async def remove(self, learner_id: str, course_id: UUID) -> bool: ...
    async def list_by_learner(self, learner_id: str) -> list[WishlistEntry]: ...
    async def delete_for_course(self, course_id: UUID) -> int: ...


class InMemoryWishlistRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, UUID], WishlistEntry] = {}

    async def get(self, learner_id: str, course_id: UUID) -> WishlistEntry | None:
        return self._store.get((learner_id, course_id))

    async def add(self, entry: WishlistEntry) -> WishlistEntry:
        key = (entry.learner_id, entry.course_id)
        if key in self._store:
            raise DuplicateWishlistError(
                f"{entry.course_id} already on {entry.learner_id}'s wishlist"
            )
        self._store[key] = entry
        return entry

    async def remove(self, learner_id: str, course_id: UUID) -> bool:
        return self._store.pop((learner_id, course_id), None) is not None

    async def list_by_learner(self, learner_id: str) -> list[WishlistEntry]:
        rows = [w for w in self._store.values() if w.learner_id == learner_id]
        return sorted(rows, key=lambda w: w.added_at, reverse=True)

    async def delete_for_course(self, course_id: UUID) -> int:
        keys = [k for k in self._store if k[1] == course_id]
        for k in keys:
            del self._store[k]
        return len(keys)
