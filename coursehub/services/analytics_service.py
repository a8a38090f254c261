"""Dashboard aggregates for learners and admins."""

from __future__ import annotations

from dataclasses import dataclass

from coursehub.models.course import Course
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.repos.wishlist_repo import WishlistRepo
from coursehub.services.progress_service import percent_of


@dataclass(frozen=True, slots=True)
class LearnerSummary:
    enrolled: int
    completed: int
    in_progress: int
    wishlisted: int


@dataclass(frozen=True, slots=True)
class AdminStats:
    total_courses: int
    total_enrollments: int
    completed_enrollments: int
    completion_rate: int
    most_enrolled: Course | None


async def learner_summary(
    enrollments: EnrollmentRepo, wishlist: WishlistRepo, learner_id: str
) -> LearnerSummary:
    mine = await enrollments.list_by_learner(learner_id)
    completed = sum(1 for e in mine if e.is_completed)
    return LearnerSummary(
        enrolled=len(mine),
        completed=completed,
        in_progress=len(mine) - completed,
        wishlisted=len(await wishlist.list_by_learner(learner_id)),
    )


async def admin_stats(courses: CourseRepo, enrollments: EnrollmentRepo) -> AdminStats:
    all_courses = await courses.list_courses()
    all_enrollments = await enrollments.list_all()
    completed = [e for e in all_enrollments if e.is_completed]

    # Same rounding as learner progress: share of enrollments at 100%.
    completion_rate = percent_of(len(completed), len(all_enrollments))

    most_enrolled = max(
        all_courses, key=lambda c: c.enrollment_count, default=None
    )
    return AdminStats(
        total_courses=len(all_courses),
        total_enrollments=len(all_enrollments),
        completed_enrollments=len(completed),
        completion_rate=completion_rate,
        most_enrolled=most_enrolled,
    )
