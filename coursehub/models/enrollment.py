from __future__ import annotations

import enum
from dataclasses import dataclass
from uuid import UUID, uuid4


class MembershipState(str, enum.Enum):
    """Where a learner stands with a course. Enrolled is stable."""

    UNRELATED = "unrelated"
    WISHLISTED = "wishlisted"
    ENROLLED = "enrolled"


@dataclass(frozen=True, slots=True)
class Enrollment:
    id: UUID
    learner_id: str
    course_id: UUID
    enrolled_at: int
    progress: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress must be within 0..100 (got {self.progress})")

    @property
    def is_completed(self) -> bool:
        return self.progress >= 100

    @staticmethod
    def new(*, learner_id: str, course_id: UUID, enrolled_at: int) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            learner_id=learner_id,
            course_id=course_id,
            enrolled_at=enrolled_at,
        )


@dataclass(frozen=True, slots=True)
class WishlistEntry:
    id: UUID
    learner_id: str
    course_id: UUID
    added_at: int

    @staticmethod
    def new(*, learner_id: str, course_id: UUID, added_at: int) -> WishlistEntry:
        return WishlistEntry(
            id=uuid4(), learner_id=learner_id, course_id=course_id, added_at=added_at
        )
