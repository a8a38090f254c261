from __future__ import annotations

import enum
from dataclasses import dataclass
from uuid import UUID, uuid4


class CompletionState(str, enum.Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """One learner's completion of one video.

    A record with completed=True is the only evidence that the learner
    finished the video; un-completing deletes the record.
    """

    id: UUID
    learner_id: str
    video_id: UUID
    completed: bool = False
    completed_at: int | None = None

    @staticmethod
    def new(
        *,
        learner_id: str,
        video_id: UUID,
        completed: bool,
        completed_at: int | None,
    ) -> ProgressRecord:
        return ProgressRecord(
            id=uuid4(),
            learner_id=learner_id,
            video_id=video_id,
            completed=completed,
            completed_at=completed_at if completed else None,
        )


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Read model: a learner's progress through one course."""

    learner_id: str
    course_id: UUID
    total_videos: int
    completed_video_ids: frozenset[UUID]
    percent_complete: int
