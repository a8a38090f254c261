from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import uuid4

from coursehub.models.course import Difficulty
from coursehub.models.draft import DraftModule, Pending, Persisted
from coursehub.repos.course_repo import InMemoryCourseRepo
from coursehub.repos.enrollment_repo import InMemoryEnrollmentRepo
from coursehub.repos.progress_repo import InMemoryProgressRepo
from coursehub.repos.wishlist_repo import InMemoryWishlistRepo
from coursehub.services import catalog_service
from coursehub.services.cache import InMemoryCacheService
from coursehub.services.enrollment_service import add_to_wishlist, enroll
from coursehub.services.hierarchy_service import hierarchy_cache_key
from coursehub.services.progress_service import toggle_video_completion
from tests.conftest import course_fields, seed_course


def test_list_newest_first() -> None:
    repo = InMemoryCourseRepo()
    old = seed_course(repo, [], title="Old")
    new = seed_course(repo, [], title="New")
    repo._courses[old.id] = replace(old, created_at=1)
    repo._courses[new.id] = replace(new, created_at=2)

    titles = [c.title for c in asyncio.run(catalog_service.list_courses(repo))]
    assert titles == ["New", "Old"]


def test_search_matches_title_and_description_case_insensitively() -> None:
    repo = InMemoryCourseRepo()
    seed_course(repo, [], title="Python Fundamentals")
    seed_course(repo, [], title="Rust for Pythonistas")
    seed_course(repo, [], title="Go Basics")

    found = asyncio.run(catalog_service.list_courses(repo, search="  PYTHON "))
    assert {c.title for c in found} == {"Python Fundamentals", "Rust for Pythonistas", "Go Basics"}
    # Descriptions all mention Python, so "rust" is the narrower probe.
    found = asyncio.run(catalog_service.list_courses(repo, search="rust"))
    assert [c.title for c in found] == ["Rust for Pythonistas"]


def test_filter_by_difficulty() -> None:
    repo = InMemoryCourseRepo()
    course = seed_course(repo, [], title="Hard one")
    repo._courses[course.id] = replace(course, difficulty=Difficulty.ADVANCED)
    seed_course(repo, [], title="Easy one")

    found = asyncio.run(
        catalog_service.list_courses(repo, difficulty=Difficulty.ADVANCED)
    )
    assert [c.title for c in found] == ["Hard one"]


def test_course_detail_counts_videos() -> None:
    repo = InMemoryCourseRepo()
    course = seed_course(repo, [2, 3])

    detail = asyncio.run(catalog_service.get_course_detail(repo, course.id))
    assert detail is not None
    assert detail.total_videos == 5
    assert len(detail.modules) == 2


def test_course_detail_for_unknown_course_is_none() -> None:
    assert asyncio.run(catalog_service.get_course_detail(InMemoryCourseRepo(), uuid4())) is None


def test_open_for_editing_records_loaded_ids() -> None:
    repo = InMemoryCourseRepo()
    course = seed_course(repo, [1, 2])

    draft = asyncio.run(catalog_service.open_for_editing(repo, course.id))

    assert draft.ref == Persisted(course.id)
    assert draft.loaded_module_ids == frozenset(repo._modules)
    assert draft.loaded_video_ids == frozenset(repo._videos)
    assert draft.surviving_video_ids() == draft.loaded_video_ids


def test_save_invalidates_cached_hierarchy() -> None:
    repo = InMemoryCourseRepo()
    cache = InMemoryCacheService()
    course = seed_course(repo, [1])
    asyncio.run(catalog_service.get_course_detail(repo, course.id, cache=cache))
    assert hierarchy_cache_key(course.id) in cache._store

    draft = asyncio.run(catalog_service.open_for_editing(repo, course.id))
    draft = replace(
        draft,
        fields=course_fields("Renamed"),
        modules=(*draft.modules, DraftModule(ref=Pending("extra"), title="Extra")),
    )
    asyncio.run(catalog_service.save_course(repo, draft, cache=cache))

    assert hierarchy_cache_key(course.id) not in cache._store
    detail = asyncio.run(catalog_service.get_course_detail(repo, course.id, cache=cache))
    assert [m.module.title for m in detail.modules] == ["Module 0", "Extra"]


def test_delete_course_removes_everything_hanging_off_it() -> None:
    courses = InMemoryCourseRepo()
    progress = InMemoryProgressRepo()
    enrollments = InMemoryEnrollmentRepo()
    wishlist = InMemoryWishlistRepo()
    course = seed_course(courses, [2, 1])
    keep = seed_course(courses, [1], title="Keep")

    asyncio.run(enroll(courses, enrollments, wishlist, "alice", course.id))
    asyncio.run(add_to_wishlist(courses, enrollments, wishlist, "bob", course.id))
    for video_id in list(courses._videos):
        asyncio.run(toggle_video_completion(progress, "alice", video_id))

    deleted = asyncio.run(
        catalog_service.delete_course(courses, progress, enrollments, wishlist, course.id)
    )

    assert deleted is True
    assert asyncio.run(courses.get_course(course.id)) is None
    assert [c.id for c in asyncio.run(courses.list_courses())] == [keep.id]
    assert len(courses._modules) == 1
    assert len(courses._videos) == 1
    assert len(asyncio.run(progress.get_completed_video_ids("alice"))) == 1
    assert asyncio.run(enrollments.list_all()) == []
    assert asyncio.run(wishlist.list_by_learner("bob")) == []


def test_delete_unknown_course_returns_false() -> None:
    assert (
        asyncio.run(
            catalog_service.delete_course(
                InMemoryCourseRepo(),
                InMemoryProgressRepo(),
                InMemoryEnrollmentRepo(),
                InMemoryWishlistRepo(),
                uuid4(),
            )
        )
        is False
    )
