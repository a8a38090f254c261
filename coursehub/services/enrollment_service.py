"""Enrollment/Wishlist state machine.

Per (learner, course) the state is exactly one of:

    Unrelated --add_to_wishlist--> Wishlisted
    Wishlisted --remove_from_wishlist--> Unrelated
    Unrelated | Wishlisted --enroll--> Enrolled

Enrolled is stable: there is no unenroll. Redundant transitions are
no-ops that report ``changed == False``. The state is always read from
the store, never cached, and a failed write leaves it where the store
says it is.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from uuid import UUID

from coursehub.core.errors import (
    CourseNotFoundError,
    DuplicateEnrollmentError,
    DuplicateWishlistError,
    PersistenceError,
)
from coursehub.models.enrollment import Enrollment, MembershipState, WishlistEntry
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.repos.wishlist_repo import WishlistRepo

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


@dataclass(frozen=True, slots=True)
class Transition:
    learner_id: str
    course_id: UUID
    before: MembershipState
    after: MembershipState
    enrollment: Enrollment | None = None
    warnings: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return self.before is not self.after


async def get_membership_state(
    enrollments: EnrollmentRepo,
    wishlist: WishlistRepo,
    learner_id: str,
    course_id: UUID,
) -> MembershipState:
    if await enrollments.get(learner_id, course_id) is not None:
        return MembershipState.ENROLLED
    if await wishlist.get(learner_id, course_id) is not None:
        return MembershipState.WISHLISTED
    return MembershipState.UNRELATED


async def add_to_wishlist(
    courses: CourseRepo,
    enrollments: EnrollmentRepo,
    wishlist: WishlistRepo,
    learner_id: str,
    course_id: UUID,
) -> Transition:
    if await courses.get_course(course_id) is None:
        raise CourseNotFoundError(course_id)

    state = await get_membership_state(enrollments, wishlist, learner_id, course_id)
    if state is not MembershipState.UNRELATED:
        return Transition(learner_id, course_id, state, state)

    try:
        await wishlist.add(
            WishlistEntry.new(learner_id=learner_id, course_id=course_id, added_at=_now())
        )
    except DuplicateWishlistError:
        # Lost a race with another add for the same pair; the entry exists.
        pass
    logger.info("Course %s wishlisted by learner=%s", course_id, learner_id)
    return Transition(
        learner_id, course_id, MembershipState.UNRELATED, MembershipState.WISHLISTED
    )


async def remove_from_wishlist(
    enrollments: EnrollmentRepo,
    wishlist: WishlistRepo,
    learner_id: str,
    course_id: UUID,
) -> Transition:
    state = await get_membership_state(enrollments, wishlist, learner_id, course_id)
    if state is not MembershipState.WISHLISTED:
        return Transition(learner_id, course_id, state, state)

    await wishlist.remove(learner_id, course_id)
    logger.info("Course %s removed from wishlist of learner=%s", course_id, learner_id)
    return Transition(
        learner_id, course_id, MembershipState.WISHLISTED, MembershipState.UNRELATED
    )


async def enroll(
    courses: CourseRepo,
    enrollments: EnrollmentRepo,
    wishlist: WishlistRepo,
    learner_id: str,
    course_id: UUID,
) -> Transition:
    """Enroll the learner, clearing any wishlist entry for the same course.

    Re-enrolling is a no-op that still clears a wishlist entry left
    behind by an earlier partially failed enroll.
    """
    if await courses.get_course(course_id) is None:
        raise CourseNotFoundError(course_id)

    before = await get_membership_state(enrollments, wishlist, learner_id, course_id)
    warnings: list[str] = []

    enrollment = await enrollments.get(learner_id, course_id)
    if enrollment is None:
        try:
            enrollment = await enrollments.add(
                Enrollment.new(
                    learner_id=learner_id, course_id=course_id, enrolled_at=_now()
                )
            )
        except DuplicateEnrollmentError:
            enrollment = await enrollments.get(learner_id, course_id)
        else:
            logger.info(
                "Learner=%s enrolled in course=%s",
                learner_id,
                course_id,
                extra={"learner_id": learner_id, "course_id": str(course_id)},
            )

    # Enrollment is committed; the wishlist entry no longer belongs.
    await wishlist.remove(learner_id, course_id)

    if not await refresh_enrollment_count(courses, enrollments, course_id):
        warnings.append("enrollment counter not refreshed")

    return Transition(
        learner_id,
        course_id,
        before,
        MembershipState.ENROLLED,
        enrollment=enrollment,
        warnings=tuple(warnings),
    )


async def refresh_enrollment_count(
    courses: CourseRepo, enrollments: EnrollmentRepo, course_id: UUID
) -> bool:
    """Recount live enrollment rows onto the course's denormalized counter.

    Returns False when the recount could not be written; the counter is
    derived data and the next enroll or recount repairs it.
    """
    try:
        count = await enrollments.count_by_course(course_id)
        await courses.set_enrollment_count(course_id, count)
    except PersistenceError as e:
        logger.warning("Enrollment counter refresh failed for course=%s: %s", course_id, e)
        return False
    return True
