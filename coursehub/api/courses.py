"""Catalog and enrollment endpoints.

  GET  /v1/courses                      -> newest first, ?search= &difficulty=
  GET  /v1/courses/{id}                 -> course + ordered module/video tree
  GET  /v1/courses/{id}/modules         -> the tree alone
  GET  /v1/courses/{id}/membership      -> unrelated | wishlisted | enrolled
  POST /v1/courses/{id}/enroll          -> 201 on first enroll, 200 if already enrolled

Tree reads degrade instead of failing: if the store is unreachable the
course still renders, with whatever part of the hierarchy could be
loaded (possibly nothing).
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from coursehub.api.dependencies import Repos, get_repos, require_user
from coursehub.api.schemas import CourseOut, ModuleOut
from coursehub.core.errors import CourseNotFoundError
from coursehub.models.course import Difficulty
from coursehub.models.principal import Principal
from coursehub.services import catalog_service, enrollment_service
from coursehub.services.cache import cache_service
from coursehub.services.hierarchy_service import load_hierarchy

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class CourseDetailOut(BaseModel):
    course: CourseOut
    modules: list[ModuleOut]
    total_videos: int


class MembershipOut(BaseModel):
    course_id: str
    state: str


class EnrollmentOut(BaseModel):
    learner_id: str
    course_id: str
    state: str
    changed: bool
    progress: int
    enrolled_at: int
    warnings: list[str]


@router.get("", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    search: str | None = None,
    difficulty: Difficulty | None = None,
) -> list[CourseOut]:
    courses = await catalog_service.list_courses(
        repos.courses, search=search, difficulty=difficulty
    )
    return [CourseOut.of(c) for c in courses]


@router.get("/{course_id}", response_model=CourseDetailOut)
async def get_course(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> CourseDetailOut:
    detail = await catalog_service.get_course_detail(
        repos.courses, course_id, cache=cache_service
    )
    if detail is None:
        raise HTTPException(status_code=404, detail="course not found")
    return CourseDetailOut(
        course=CourseOut.of(detail.course),
        modules=[ModuleOut.of(m) for m in detail.modules],
        total_videos=detail.total_videos,
    )


@router.get("/{course_id}/modules", response_model=list[ModuleOut])
async def get_course_modules(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[ModuleOut]:
    tree = await load_hierarchy(repos.courses, course_id, cache=cache_service)
    return [ModuleOut.of(m) for m in tree]


@router.get("/{course_id}/membership", response_model=MembershipOut)
async def get_membership(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> MembershipOut:
    state = await enrollment_service.get_membership_state(
        repos.enrollments, repos.wishlist, principal.learner_id, course_id
    )
    return MembershipOut(course_id=str(course_id), state=state.value)


@router.post(
    "/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: UUID,
    response: Response,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> EnrollmentOut:
    try:
        transition = await enrollment_service.enroll(
            repos.courses,
            repos.enrollments,
            repos.wishlist,
            principal.learner_id,
            course_id,
        )
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None

    if not transition.changed:
        response.status_code = status.HTTP_200_OK

    enrollment = transition.enrollment
    return EnrollmentOut(
        learner_id=principal.learner_id,
        course_id=str(course_id),
        state=transition.after.value,
        changed=transition.changed,
        progress=enrollment.progress if enrollment is not None else 0,
        enrolled_at=enrollment.enrolled_at if enrollment is not None else 0,
        warnings=list(transition.warnings),
    )
