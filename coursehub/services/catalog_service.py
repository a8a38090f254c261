"""Course catalog: listing, search, detail, authoring save, and delete."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from coursehub.models.course import Course, Difficulty, ModuleTree
from coursehub.models.draft import DraftCourse
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.repos.progress_repo import ProgressRepo
from coursehub.repos.wishlist_repo import WishlistRepo
from coursehub.services.cache import CacheService
from coursehub.services.hierarchy_service import invalidate_hierarchy, load_hierarchy
from coursehub.services.reconciler import ReconcileReport, reconcile_course

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CourseDetail:
    course: Course
    modules: list[ModuleTree]

    @property
    def total_videos(self) -> int:
        return sum(len(m.videos) for m in self.modules)


async def list_courses(
    repo: CourseRepo,
    *,
    search: str | None = None,
    difficulty: Difficulty | None = None,
) -> list[Course]:
    """Newest first, optionally narrowed by a title/description search."""
    courses = await repo.list_courses()
    needle = (search or "").strip().lower()
    return [
        c
        for c in courses
        if (difficulty is None or c.difficulty is difficulty)
        and (
            not needle
            or needle in c.title.lower()
            or needle in c.description.lower()
        )
    ]


async def get_course_detail(
    repo: CourseRepo, course_id: UUID, *, cache: CacheService | None = None
) -> CourseDetail | None:
    course = await repo.get_course(course_id)
    if course is None:
        return None
    modules = await load_hierarchy(repo, course_id, cache=cache)
    return CourseDetail(course=course, modules=modules)


async def open_for_editing(repo: CourseRepo, course_id: UUID) -> DraftCourse | None:
    """Snapshot a course as a draft, recording the ids loaded right now."""
    course = await repo.get_course(course_id)
    if course is None:
        return None
    tree = await load_hierarchy(repo, course_id)
    return DraftCourse.from_tree(course, tree)


async def save_course(
    repo: CourseRepo, draft: DraftCourse, *, cache: CacheService | None = None
) -> ReconcileReport:
    report = await reconcile_course(repo, draft)
    if cache is not None and report.course_id is not None:
        await invalidate_hierarchy(cache, report.course_id)
    return report


async def delete_course(
    courses: CourseRepo,
    progress: ProgressRepo,
    enrollments: EnrollmentRepo,
    wishlist: WishlistRepo,
    course_id: UUID,
    *,
    cache: CacheService | None = None,
) -> bool:
    """Delete a course and everything hanging off it, children first.

    Uses the strict listing calls (no degraded tree): deleting from a
    partial view would leave orphans behind. Any failure propagates.
    """
    if await courses.get_course(course_id) is None:
        return False

    modules = await courses.list_modules(course_id)
    videos = [v for m in modules for v in await courses.list_videos(m.id)]

    await progress.delete_for_videos(v.id for v in videos)
    for video in videos:
        await courses.delete_video(video.id)
    for module in modules:
        await courses.delete_module(module.id)
    await enrollments.delete_for_course(course_id)
    await wishlist.delete_for_course(course_id)
    deleted = await courses.delete_course(course_id)

    if cache is not None:
        await invalidate_hierarchy(cache, course_id)
    logger.info(
        "Deleted course=%s with %d modules and %d videos",
        course_id,
        len(modules),
        len(videos),
        extra={"course_id": str(course_id)},
    )
    return deleted
