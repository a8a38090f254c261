from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from coursehub.core.errors import PersistenceError, VideoNotFoundError
from coursehub.models.enrollment import Enrollment
from coursehub.models.progress import CompletionState
from coursehub.repos.course_repo import InMemoryCourseRepo
from coursehub.repos.enrollment_repo import InMemoryEnrollmentRepo
from coursehub.repos.progress_repo import InMemoryProgressRepo
from coursehub.services.progress_service import (
    compute_progress,
    course_progress,
    percent_of,
    sync_enrollment_progress,
    toggle_and_sync,
    toggle_video_completion,
)
from tests.conftest import seed_course


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def _course_video_ids(repo: InMemoryCourseRepo, course_id) -> list:
    tree = asyncio.run(repo.list_modules_with_videos(course_id))
    return [v.id for m in tree for v in m.videos]


def _enroll(repo: InMemoryEnrollmentRepo, learner: str, course_id) -> None:
    asyncio.run(
        repo.add(Enrollment.new(learner_id=learner, course_id=course_id, enrolled_at=1))
    )


# ---- compute_progress ----


def test_three_of_five_is_sixty_percent() -> None:
    ids = {uuid4() for _ in range(3)}
    assert compute_progress(5, ids) == 60


def test_nothing_completed_is_zero() -> None:
    assert compute_progress(4, set()) == 0


def test_empty_course_is_zero_not_an_error() -> None:
    assert compute_progress(0, set()) == 0
    assert compute_progress(0, {uuid4()}) == 0


def test_rounds_half_up() -> None:
    # 1/8 = 12.5 -> 13, 1/3 = 33.3 -> 33, 2/3 = 66.6 -> 67
    assert compute_progress(8, {uuid4()}) == 13
    assert compute_progress(3, {uuid4()}) == 33
    assert compute_progress(3, {uuid4(), uuid4()}) == 67


def test_clamped_to_one_hundred() -> None:
    assert compute_progress(2, {uuid4() for _ in range(5)}) == 100


def test_bounded_and_non_decreasing_for_every_count() -> None:
    for total in range(1, 51):
        previous = -1
        for done in range(total + 1):
            pct = compute_progress(total, {uuid4() for _ in range(done)})
            assert 0 <= pct <= 100, (total, done)
            assert pct >= previous, (total, done)
            previous = pct
        assert previous == 100


def test_percent_of_matches_compute_progress() -> None:
    assert percent_of(1, 8) == 13
    assert percent_of(0, 0) == 0
    assert percent_of(7, 7) == 100
    assert percent_of(3, 5) == compute_progress(5, {uuid4() for _ in range(3)})


def test_percentage_drops_when_course_grows() -> None:
    done = {uuid4() for _ in range(4)}
    assert compute_progress(4, done) == 100
    assert compute_progress(8, done) == 50


# ---- toggle_video_completion ----


def test_toggle_marks_complete_then_incomplete() -> None:
    repo = InMemoryProgressRepo()
    video = uuid4()

    assert asyncio.run(toggle_video_completion(repo, "alice", video)) is CompletionState.COMPLETE
    assert asyncio.run(repo.get_completed_video_ids("alice")) == frozenset({video})

    assert asyncio.run(toggle_video_completion(repo, "alice", video)) is CompletionState.INCOMPLETE
    assert asyncio.run(repo.get_completed_video_ids("alice")) == frozenset()


def test_toggle_is_scoped_to_one_learner_and_video() -> None:
    repo = InMemoryProgressRepo()
    v1, v2 = uuid4(), uuid4()
    asyncio.run(toggle_video_completion(repo, "alice", v1))
    asyncio.run(toggle_video_completion(repo, "bob", v2))

    assert asyncio.run(repo.get_completed_video_ids("alice")) == frozenset({v1})
    assert asyncio.run(repo.get_completed_video_ids("bob")) == frozenset({v2})


def test_concurrent_toggles_on_different_videos_do_not_interfere() -> None:
    repo = InMemoryProgressRepo()
    videos = [uuid4() for _ in range(5)]

    async def _run() -> None:
        await asyncio.gather(*(toggle_video_completion(repo, "alice", v) for v in videos))

    asyncio.run(_run())
    assert asyncio.run(repo.get_completed_video_ids("alice")) == frozenset(videos)


# ---- sync_enrollment_progress ----


def test_sync_writes_new_value() -> None:
    repo = InMemoryEnrollmentRepo()
    course_id = uuid4()
    _enroll(repo, "alice", course_id)

    assert asyncio.run(sync_enrollment_progress(repo, "alice", course_id, 40)) is True
    assert asyncio.run(repo.get("alice", course_id)).progress == 40


def test_sync_skips_when_unchanged() -> None:
    repo = InMemoryEnrollmentRepo()
    course_id = uuid4()
    _enroll(repo, "alice", course_id)

    before = _get_sample("progress_sync_total", {"result": "skipped"})
    assert (
        asyncio.run(sync_enrollment_progress(repo, "alice", course_id, 0, last_synced=0))
        is False
    )
    after = _get_sample("progress_sync_total", {"result": "skipped"})
    assert after - before == 1


def test_sync_without_enrollment_writes_nothing() -> None:
    repo = InMemoryEnrollmentRepo()
    assert asyncio.run(sync_enrollment_progress(repo, "alice", uuid4(), 50)) is False
    assert asyncio.run(repo.list_all()) == []


def test_sync_rejects_out_of_range() -> None:
    repo = InMemoryEnrollmentRepo()
    with pytest.raises(ValueError, match="0..100"):
        asyncio.run(sync_enrollment_progress(repo, "alice", uuid4(), 101))


def test_sync_can_lower_progress() -> None:
    repo = InMemoryEnrollmentRepo()
    course_id = uuid4()
    _enroll(repo, "alice", course_id)
    asyncio.run(sync_enrollment_progress(repo, "alice", course_id, 100))
    asyncio.run(sync_enrollment_progress(repo, "alice", course_id, 50, last_synced=100))
    assert asyncio.run(repo.get("alice", course_id)).progress == 50


# ---- course_progress / toggle_and_sync ----


def test_course_progress_counts_only_this_course() -> None:
    courses = InMemoryCourseRepo()
    progress = InMemoryProgressRepo()
    course = seed_course(courses, [2, 3])
    other = seed_course(courses, [1], title="Other")

    for video_id in _course_video_ids(courses, course.id)[:3]:
        asyncio.run(toggle_video_completion(progress, "alice", video_id))
    for video_id in _course_video_ids(courses, other.id):
        asyncio.run(toggle_video_completion(progress, "alice", video_id))

    p = asyncio.run(course_progress(courses, progress, "alice", course.id))
    assert p.total_videos == 5
    assert len(p.completed_video_ids) == 3
    assert p.percent_complete == 60


def test_course_progress_degrades_when_completion_lookup_fails() -> None:
    class _BrokenProgressRepo(InMemoryProgressRepo):
        async def get_completed_video_ids(self, learner_id):
            raise PersistenceError("get_completed_video_ids", "connection refused")

    courses = InMemoryCourseRepo()
    course = seed_course(courses, [4])

    p = asyncio.run(course_progress(courses, _BrokenProgressRepo(), "alice", course.id))
    assert p.total_videos == 4
    assert p.percent_complete == 0


def test_toggle_and_sync_updates_enrollment() -> None:
    courses = InMemoryCourseRepo()
    progress = InMemoryProgressRepo()
    enrollments = InMemoryEnrollmentRepo()
    course = seed_course(courses, [2, 2])
    _enroll(enrollments, "alice", course.id)
    first = _course_video_ids(courses, course.id)[0]

    result = asyncio.run(
        toggle_and_sync(courses, progress, enrollments, "alice", course.id, first)
    )
    assert result.state is CompletionState.COMPLETE
    assert result.progress.percent_complete == 25
    assert result.synced is True
    assert asyncio.run(enrollments.get("alice", course.id)).progress == 25

    result = asyncio.run(
        toggle_and_sync(courses, progress, enrollments, "alice", course.id, first)
    )
    assert result.state is CompletionState.INCOMPLETE
    assert result.progress.percent_complete == 0
    assert asyncio.run(enrollments.get("alice", course.id)).progress == 0


def test_toggle_and_sync_without_enrollment_still_records_completion() -> None:
    courses = InMemoryCourseRepo()
    progress = InMemoryProgressRepo()
    enrollments = InMemoryEnrollmentRepo()
    course = seed_course(courses, [2])
    video = _course_video_ids(courses, course.id)[0]

    result = asyncio.run(
        toggle_and_sync(courses, progress, enrollments, "alice", course.id, video)
    )
    assert result.synced is False
    assert result.progress.percent_complete == 50
    assert asyncio.run(progress.get_completed_video_ids("alice")) == frozenset({video})


def test_toggle_and_sync_rejects_video_from_another_course() -> None:
    courses = InMemoryCourseRepo()
    course = seed_course(courses, [1])
    other = seed_course(courses, [1], title="Other")
    foreign = _course_video_ids(courses, other.id)[0]

    with pytest.raises(VideoNotFoundError):
        asyncio.run(
            toggle_and_sync(
                courses,
                InMemoryProgressRepo(),
                InMemoryEnrollmentRepo(),
                "alice",
                course.id,
                foreign,
            )
        )


def test_toggle_and_sync_propagates_write_failure() -> None:
    class _ReadOnlyProgressRepo(InMemoryProgressRepo):
        async def upsert(self, learner_id, video_id, *, completed, completed_at):
            raise PersistenceError("upsert_progress", "read-only replica")

    courses = InMemoryCourseRepo()
    course = seed_course(courses, [1])
    video = _course_video_ids(courses, course.id)[0]

    with pytest.raises(PersistenceError):
        asyncio.run(
            toggle_and_sync(
                courses,
                _ReadOnlyProgressRepo(),
                InMemoryEnrollmentRepo(),
                "alice",
                course.id,
                video,
            )
        )
