"""The signed-in learner's own wishlist, enrollments and dashboard counts."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from coursehub.api.dependencies import Repos, get_repos, require_user
from coursehub.api.schemas import CourseOut
from coursehub.core.errors import CourseNotFoundError
from coursehub.models.principal import Principal
from coursehub.services import analytics_service, enrollment_service
from coursehub.services.enrollment_service import Transition

router = APIRouter(prefix="/v1/me", tags=["me"])


class TransitionOut(BaseModel):
    course_id: str
    before: str
    after: str
    changed: bool

    @staticmethod
    def of(t: Transition) -> TransitionOut:
        return TransitionOut(
            course_id=str(t.course_id),
            before=t.before.value,
            after=t.after.value,
            changed=t.changed,
        )


class WishlistItemOut(BaseModel):
    course: CourseOut
    added_at: int


class MyEnrollmentOut(BaseModel):
    course: CourseOut
    progress: int
    enrolled_at: int
    completed: bool


class SummaryOut(BaseModel):
    enrolled: int
    completed: int
    in_progress: int
    wishlisted: int


@router.post("/wishlist/{course_id}", response_model=TransitionOut)
async def add_to_wishlist(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> TransitionOut:
    try:
        t = await enrollment_service.add_to_wishlist(
            repos.courses,
            repos.enrollments,
            repos.wishlist,
            principal.learner_id,
            course_id,
        )
    except CourseNotFoundError:
        raise HTTPException(status_code=404, detail="course not found") from None
    return TransitionOut.of(t)


@router.delete("/wishlist/{course_id}", response_model=TransitionOut)
async def remove_from_wishlist(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> TransitionOut:
    t = await enrollment_service.remove_from_wishlist(
        repos.enrollments, repos.wishlist, principal.learner_id, course_id
    )
    return TransitionOut.of(t)


@router.get("/wishlist", response_model=list[WishlistItemOut])
async def list_wishlist(
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[WishlistItemOut]:
    items: list[WishlistItemOut] = []
    for entry in await repos.wishlist.list_by_learner(principal.learner_id):
        course = await repos.courses.get_course(entry.course_id)
        if course is not None:
            items.append(WishlistItemOut(course=CourseOut.of(course), added_at=entry.added_at))
    return items


@router.get("/enrollments", response_model=list[MyEnrollmentOut])
async def list_enrollments(
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[MyEnrollmentOut]:
    items: list[MyEnrollmentOut] = []
    for e in await repos.enrollments.list_by_learner(principal.learner_id):
        course = await repos.courses.get_course(e.course_id)
        if course is None:
            continue
        items.append(
            MyEnrollmentOut(
                course=CourseOut.of(course),
                progress=e.progress,
                enrolled_at=e.enrolled_at,
                completed=e.is_completed,
            )
        )
    return items


@router.get("/summary", response_model=SummaryOut)
async def my_summary(
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> SummaryOut:
    s = await analytics_service.learner_summary(
        repos.enrollments, repos.wishlist, principal.learner_id
    )
    return SummaryOut(
        enrolled=s.enrolled,
        completed=s.completed,
        in_progress=s.in_progress,
        wishlisted=s.wishlisted,
    )
