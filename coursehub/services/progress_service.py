"""Progress Engine.

A learner's course percentage is always derived: completed videos of
the course divided by the course's current video count. Nothing is
accumulated incrementally, so adding videos to a course lowers the
percentage on the next computation.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Collection
from dataclasses import dataclass
from uuid import UUID

from coursehub.core.errors import PersistenceError, VideoNotFoundError
from coursehub.core.metrics import PROGRESS_SYNC
from coursehub.models.course import video_ids
from coursehub.models.progress import CompletionState, CourseProgress
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.repos.progress_repo import ProgressRepo
from coursehub.services.cache import CacheService
from coursehub.services.hierarchy_service import load_hierarchy

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def percent_of(part: int, whole: int) -> int:
    """``round(100 * part / whole)`` with ties going up, clamped to 0..100.

    0 when ``whole`` is zero.
    """
    if whole <= 0:
        return 0
    pct = (200 * part + whole) // (2 * whole)
    return max(0, min(100, pct))


def compute_progress(total_video_count: int, completed_video_ids: Collection[UUID]) -> int:
    """Percentage of videos completed, rounded half up. 0 for an empty course."""
    return percent_of(len(completed_video_ids), total_video_count)


async def toggle_video_completion(
    repo: ProgressRepo, learner_id: str, video_id: UUID
) -> CompletionState:
    """Flip completion for exactly one (learner, video) pair.

    Each pair has its own record, so toggles for different videos can be
    in flight at once without interfering.
    """
    record = await repo.get(learner_id, video_id)
    if record is not None and record.completed:
        await repo.delete(learner_id, video_id)
        logger.info("Video %s marked incomplete for learner=%s", video_id, learner_id)
        return CompletionState.INCOMPLETE

    await repo.upsert(learner_id, video_id, completed=True, completed_at=_now())
    logger.info("Video %s marked complete for learner=%s", video_id, learner_id)
    return CompletionState.COMPLETE


async def sync_enrollment_progress(
    repo: EnrollmentRepo,
    learner_id: str,
    course_id: UUID,
    percentage: int,
    *,
    last_synced: int | None = None,
) -> bool:
    """Write ``percentage`` onto the learner's enrollment.

    Skips the write when it matches ``last_synced``. Returns True only
    when a row was actually written.
    """
    if not 0 <= percentage <= 100:
        raise ValueError(f"percentage must be within 0..100 (got {percentage})")

    if last_synced == percentage:
        PROGRESS_SYNC.labels(result="skipped").inc()
        return False

    updated = await repo.update_progress(learner_id, course_id, percentage)
    if updated is None:
        PROGRESS_SYNC.labels(result="no_enrollment").inc()
        logger.debug(
            "No enrollment to sync for learner=%s course=%s", learner_id, course_id
        )
        return False

    PROGRESS_SYNC.labels(result="written").inc()
    logger.info(
        "Enrollment progress for learner=%s course=%s set to %d%%",
        learner_id,
        course_id,
        percentage,
        extra={"learner_id": learner_id, "course_id": str(course_id)},
    )
    return True


async def course_progress(
    course_repo: CourseRepo,
    progress_repo: ProgressRepo,
    learner_id: str,
    course_id: UUID,
    *,
    cache: CacheService | None = None,
) -> CourseProgress:
    """Read-only progress view. Falls back to nothing-completed on failure."""
    tree = await load_hierarchy(course_repo, course_id, cache=cache)
    course_videos = video_ids(tree)
    try:
        completed = await progress_repo.get_completed_video_ids(learner_id)
    except PersistenceError as e:
        logger.warning(
            "Completed-video lookup failed for learner=%s: %s", learner_id, e
        )
        completed = frozenset()
    mine = completed & course_videos
    return CourseProgress(
        learner_id=learner_id,
        course_id=course_id,
        total_videos=len(course_videos),
        completed_video_ids=mine,
        percent_complete=compute_progress(len(course_videos), mine),
    )


@dataclass(frozen=True, slots=True)
class ToggleResult:
    video_id: UUID
    state: CompletionState
    progress: CourseProgress
    synced: bool


async def toggle_and_sync(
    course_repo: CourseRepo,
    progress_repo: ProgressRepo,
    enrollment_repo: EnrollmentRepo,
    learner_id: str,
    course_id: UUID,
    video_id: UUID,
    *,
    cache: CacheService | None = None,
) -> ToggleResult:
    """Toggle one video, recompute the course percentage, sync if it moved.

    The new completed set is derived locally from the confirmed toggle
    result; persistence failures propagate to the caller unchanged.
    """
    tree = await load_hierarchy(course_repo, course_id, cache=cache)
    course_videos = video_ids(tree)
    if video_id not in course_videos:
        raise VideoNotFoundError(video_id, course_id)

    completed_before = (
        await progress_repo.get_completed_video_ids(learner_id)
    ) & course_videos

    state = await toggle_video_completion(progress_repo, learner_id, video_id)

    if state is CompletionState.COMPLETE:
        completed = completed_before | {video_id}
    else:
        completed = completed_before - {video_id}
    percentage = compute_progress(len(course_videos), completed)

    enrollment = await enrollment_repo.get(learner_id, course_id)
    if enrollment is None:
        PROGRESS_SYNC.labels(result="no_enrollment").inc()
        synced = False
    else:
        synced = await sync_enrollment_progress(
            enrollment_repo,
            learner_id,
            course_id,
            percentage,
            last_synced=enrollment.progress,
        )

    return ToggleResult(
        video_id=video_id,
        state=state,
        progress=CourseProgress(
            learner_id=learner_id,
            course_id=course_id,
            total_videos=len(course_videos),
            completed_video_ids=frozenset(completed),
            percent_complete=percentage,
        ),
        synced=synced,
    )
