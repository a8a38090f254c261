from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from coursehub.core.errors import CourseNotFoundError, PersistenceError
from coursehub.models.enrollment import MembershipState
from coursehub.repos.course_repo import InMemoryCourseRepo
from coursehub.repos.enrollment_repo import InMemoryEnrollmentRepo
from coursehub.repos.wishlist_repo import InMemoryWishlistRepo
from coursehub.services.enrollment_service import (
    add_to_wishlist,
    enroll,
    get_membership_state,
    remove_from_wishlist,
)
from tests.conftest import seed_course


@pytest.fixture
def repos():
    return InMemoryCourseRepo(), InMemoryEnrollmentRepo(), InMemoryWishlistRepo()


def _state(repos, learner, course_id) -> MembershipState:
    _, enrollments, wishlist = repos
    return asyncio.run(get_membership_state(enrollments, wishlist, learner, course_id))


def test_unrelated_by_default(repos) -> None:
    courses, _, _ = repos
    course = seed_course(courses, [1])
    assert _state(repos, "alice", course.id) is MembershipState.UNRELATED


def test_wishlist_add_and_remove(repos) -> None:
    courses, enrollments, wishlist = repos
    course = seed_course(courses, [1])

    t = asyncio.run(add_to_wishlist(courses, enrollments, wishlist, "alice", course.id))
    assert t.changed
    assert t.after is MembershipState.WISHLISTED
    assert _state(repos, "alice", course.id) is MembershipState.WISHLISTED

    t = asyncio.run(remove_from_wishlist(enrollments, wishlist, "alice", course.id))
    assert t.after is MembershipState.UNRELATED
    assert _state(repos, "alice", course.id) is MembershipState.UNRELATED


def test_wishlist_add_twice_is_a_no_op(repos) -> None:
    courses, enrollments, wishlist = repos
    course = seed_course(courses, [1])
    asyncio.run(add_to_wishlist(courses, enrollments, wishlist, "alice", course.id))

    t = asyncio.run(add_to_wishlist(courses, enrollments, wishlist, "alice", course.id))
    assert not t.changed
    assert len(asyncio.run(wishlist.list_by_learner("alice"))) == 1


def test_remove_when_not_wishlisted_is_a_no_op(repos) -> None:
    courses, enrollments, wishlist = repos
    course = seed_course(courses, [1])
    t = asyncio.run(remove_from_wishlist(enrollments, wishlist, "alice", course.id))
    assert not t.changed
    assert t.after is MembershipState.UNRELATED


def test_wishlist_unknown_course_raises(repos) -> None:
    courses, enrollments, wishlist = repos
    with pytest.raises(CourseNotFoundError):
        asyncio.run(add_to_wishlist(courses, enrollments, wishlist, "alice", uuid4()))


def test_enroll_from_wishlist_clears_the_wishlist(repos) -> None:
    courses, enrollments, wishlist = repos
    course = seed_course(courses, [3])
    asyncio.run(add_to_wishlist(courses, enrollments, wishlist, "alice", course.id))

    t = asyncio.run(enroll(courses, enrollments, wishlist, "alice", course.id))

    assert t.before is MembershipState.WISHLISTED
    assert t.after is MembershipState.ENROLLED
    assert t.enrollment is not None and t.enrollment.progress == 0
    assert asyncio.run(wishlist.get("alice", course.id)) is None
    assert _state(repos, "alice", course.id) is MembershipState.ENROLLED


def test_enroll_refreshes_the_course_counter(repos) -> None:
    courses, enrollments, wishlist = repos
    course = seed_course(courses, [1])

    asyncio.run(enroll(courses, enrollments, wishlist, "alice", course.id))
    asyncio.run(enroll(courses, enrollments, wishlist, "bob", course.id))
    asyncio.run(enroll(courses, enrollments, wishlist, "bob", course.id))

    assert asyncio.run(courses.get_course(course.id)).enrollment_count == 2


def test_re_enroll_is_a_no_op(repos) -> None:
    courses, enrollments, wishlist = repos
    course = seed_course(courses, [1])
    first = asyncio.run(enroll(courses, enrollments, wishlist, "alice", course.id))

    again = asyncio.run(enroll(courses, enrollments, wishlist, "alice", course.id))

    assert not again.changed
    assert again.enrollment == first.enrollment


def test_enrolled_course_cannot_be_wishlisted(repos) -> None:
    courses, enrollments, wishlist = repos
    course = seed_course(courses, [1])
    asyncio.run(enroll(courses, enrollments, wishlist, "alice", course.id))

    t = asyncio.run(add_to_wishlist(courses, enrollments, wishlist, "alice", course.id))

    assert not t.changed
    assert asyncio.run(wishlist.get("alice", course.id)) is None


def test_enroll_unknown_course_raises(repos) -> None:
    courses, enrollments, wishlist = repos
    with pytest.raises(CourseNotFoundError):
        asyncio.run(enroll(courses, enrollments, wishlist, "alice", uuid4()))


def test_counter_failure_is_a_warning_not_an_error(repos) -> None:
    class _FrozenCounterRepo(InMemoryCourseRepo):
        async def set_enrollment_count(self, course_id, count):
            raise PersistenceError("set_enrollment_count", "lock timeout")

    _, enrollments, wishlist = repos
    courses = _FrozenCounterRepo()
    course = seed_course(courses, [1])

    t = asyncio.run(enroll(courses, enrollments, wishlist, "alice", course.id))

    assert t.after is MembershipState.ENROLLED
    assert t.warnings == ("enrollment counter not refreshed",)
    assert asyncio.run(enrollments.get("alice", course.id)) is not None


def test_failed_enroll_leaves_wishlist_in_place(repos) -> None:
    class _BrokenEnrollmentRepo(InMemoryEnrollmentRepo):
        async def add(self, enrollment):
            raise PersistenceError("add_enrollment", "connection reset")

    courses, _, wishlist = repos
    enrollments = _BrokenEnrollmentRepo()
    course = seed_course(courses, [1])
    asyncio.run(add_to_wishlist(courses, enrollments, wishlist, "alice", course.id))

    with pytest.raises(PersistenceError):
        asyncio.run(enroll(courses, enrollments, wishlist, "alice", course.id))

    state = asyncio.run(get_membership_state(enrollments, wishlist, "alice", course.id))
    assert state is MembershipState.WISHLISTED
