"""Course authoring for admins.

The editor works on a whole course tree at once. Every module and video
in the payload carries a ref:

  {"kind": "persisted", "id": "<uuid>"}     an existing row, overwritten
  {"kind": "pending", "temp_key": "m-1"}    a node created in the editor

List position becomes order_index. Rows that were loaded into the editor
but are missing from the payload are deleted.

Save responses map the reconcile report status onto HTTP:
  succeeded            -> 200 (201 for a new course)
  partially_succeeded  -> 207, with the failed items listed
  failed               -> 502, nothing beyond the course row was attempted
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import partial
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import Repos, get_repos, require_role
from coursehub.api.schemas import CourseOut
from coursehub.core.errors import CourseValidationError
from coursehub.models.course import Difficulty
from coursehub.models.draft import (
    CourseFields,
    DraftCourse,
    DraftModule,
    DraftVideo,
    NodeRef,
    Pending,
    Persisted,
)
from coursehub.models.principal import Principal
from coursehub.services import analytics_service, catalog_service
from coursehub.services.cache import cache_service
from coursehub.services.hierarchy_service import invalidate_hierarchy
from coursehub.services.reconciler import ReconcileReport, ReconcileStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])

_NEW_COURSE_KEY = "new-course"


class PendingRefIn(BaseModel):
    kind: Literal["pending"]
    temp_key: str = Field(min_length=1)


class PersistedRefIn(BaseModel):
    kind: Literal["persisted"]
    id: UUID


RefIn = Annotated[PendingRefIn | PersistedRefIn, Field(discriminator="kind")]


class VideoDraftIn(BaseModel):
    ref: RefIn
    title: str
    video_url: str
    duration: str = ""


class ModuleDraftIn(BaseModel):
    ref: RefIn
    title: str
    description: str = ""
    videos: list[VideoDraftIn] = []


class CourseDraftIn(BaseModel):
    title: str
    description: str
    instructor: str
    difficulty: Difficulty = Difficulty.BEGINNER
    price: Decimal = Decimal("0")
    duration: str = ""
    thumbnail: str = ""
    category: str = ""
    modules: list[ModuleDraftIn] = []
    # Ids the editor loaded; omitted means "whatever the course has now".
    loaded_module_ids: list[UUID] | None = None
    loaded_video_ids: list[UUID] | None = None


class OutcomeOut(BaseModel):
    entity: str
    action: str
    key: str
    ok: bool
    persisted_id: str | None
    error: str | None


class ReportOut(BaseModel):
    course_id: str | None
    status: str
    summary: dict[str, int]
    outcomes: list[OutcomeOut]


class RefOut(BaseModel):
    kind: str
    id: str | None = None
    temp_key: str | None = None


class VideoDraftOut(BaseModel):
    ref: RefOut
    title: str
    video_url: str
    duration: str


class ModuleDraftOut(BaseModel):
    ref: RefOut
    title: str
    description: str
    videos: list[VideoDraftOut]


class CourseDraftOut(BaseModel):
    course: CourseOut
    modules: list[ModuleDraftOut]
    loaded_module_ids: list[str]
    loaded_video_ids: list[str]


class StatsOut(BaseModel):
    total_courses: int
    total_enrollments: int
    completed_enrollments: int
    completion_rate: int
    most_enrolled: CourseOut | None


def _to_ref(ref: PendingRefIn | PersistedRefIn) -> NodeRef:
    if isinstance(ref, PendingRefIn):
        return Pending(ref.temp_key)
    return Persisted(ref.id)


def _ref_out(ref: NodeRef) -> RefOut:
    if isinstance(ref, Pending):
        return RefOut(kind="pending", temp_key=ref.temp_key)
    return RefOut(kind="persisted", id=str(ref.id))


def _to_draft(
    body: CourseDraftIn,
    ref: NodeRef,
    loaded_module_ids: frozenset[UUID],
    loaded_video_ids: frozenset[UUID],
) -> DraftCourse:
    return DraftCourse(
        ref=ref,
        fields=CourseFields(
            title=body.title,
            description=body.description,
            instructor=body.instructor,
            difficulty=body.difficulty,
            price=body.price,
            duration=body.duration,
            thumbnail=body.thumbnail,
            category=body.category,
        ),
        modules=tuple(
            DraftModule(
                ref=_to_ref(m.ref),
                title=m.title,
                description=m.description,
                videos=tuple(
                    DraftVideo(
                        ref=_to_ref(v.ref),
                        title=v.title,
                        video_url=v.video_url,
                        duration=v.duration,
                    )
                    for v in m.videos
                ),
            )
            for m in body.modules
        ),
        loaded_module_ids=loaded_module_ids,
        loaded_video_ids=loaded_video_ids,
    )


def _report_out(report: ReconcileReport) -> ReportOut:
    return ReportOut(
        course_id=str(report.course_id) if report.course_id is not None else None,
        status=report.status.value,
        summary=report.summary(),
        outcomes=[
            OutcomeOut(
                entity=o.entity,
                action=o.action,
                key=o.key,
                ok=o.ok,
                persisted_id=str(o.persisted_id) if o.persisted_id else None,
                error=o.error,
            )
            for o in report.outcomes
        ],
    )


def _status_for(report: ReconcileReport, success: int) -> int:
    if report.status is ReconcileStatus.FAILED:
        return status.HTTP_502_BAD_GATEWAY
    if report.status is ReconcileStatus.PARTIALLY_SUCCEEDED:
        return status.HTTP_207_MULTI_STATUS
    return success


async def _save(repos: Repos, draft: DraftCourse) -> ReconcileReport:
    try:
        report = await catalog_service.save_course(
            repos.courses, draft, cache=cache_service
        )
    except CourseValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.problems
        ) from None
    if report.course_id is not None:
        # A reader between the in-request invalidation and the commit
        # re-caches the old rows; drop the entry again once committed.
        repos.on_commit(partial(invalidate_hierarchy, cache_service, report.course_id))
    return report


@router.post("/courses", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseDraftIn,
    response: Response,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    repos: Annotated[Repos, Depends(get_repos)],
) -> ReportOut:
    logger.info("Course create requested by user=%s", principal.user_id)
    draft = _to_draft(body, Pending(_NEW_COURSE_KEY), frozenset(), frozenset())
    report = await _save(repos, draft)
    response.status_code = _status_for(report, status.HTTP_201_CREATED)
    return _report_out(report)


@router.get("/courses/{course_id}/draft", response_model=CourseDraftOut)
async def open_course_draft(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_role("admin"))],
    repos: Annotated[Repos, Depends(get_repos)],
) -> CourseDraftOut:
    course = await repos.courses.get_course(course_id)
    draft = await catalog_service.open_for_editing(repos.courses, course_id)
    if course is None or draft is None:
        raise HTTPException(status_code=404, detail="course not found")
    return CourseDraftOut(
        course=CourseOut.of(course),
        modules=[
            ModuleDraftOut(
                ref=_ref_out(m.ref),
                title=m.title,
                description=m.description,
                videos=[
                    VideoDraftOut(
                        ref=_ref_out(v.ref),
                        title=v.title,
                        video_url=v.video_url,
                        duration=v.duration,
                    )
                    for v in m.videos
                ],
            )
            for m in draft.modules
        ],
        loaded_module_ids=sorted(str(i) for i in draft.loaded_module_ids),
        loaded_video_ids=sorted(str(i) for i in draft.loaded_video_ids),
    )


@router.put("/courses/{course_id}", response_model=ReportOut)
async def update_course(
    course_id: UUID,
    body: CourseDraftIn,
    response: Response,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    repos: Annotated[Repos, Depends(get_repos)],
) -> ReportOut:
    logger.info(
        "Course update requested by user=%s",
        principal.user_id,
        extra={"course_id": str(course_id)},
    )
    current = await catalog_service.open_for_editing(repos.courses, course_id)
    if current is None:
        raise HTTPException(status_code=404, detail="course not found")

    # Only ids that still belong to the course can be deleted by absence.
    loaded_modules = current.loaded_module_ids
    loaded_videos = current.loaded_video_ids
    if body.loaded_module_ids is not None:
        loaded_modules = loaded_modules & frozenset(body.loaded_module_ids)
    if body.loaded_video_ids is not None:
        loaded_videos = loaded_videos & frozenset(body.loaded_video_ids)

    draft = _to_draft(body, Persisted(course_id), loaded_modules, loaded_videos)
    report = await _save(repos, draft)
    response.status_code = _status_for(report, status.HTTP_200_OK)
    return _report_out(report)


@router.delete("/courses/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_role("admin"))],
    repos: Annotated[Repos, Depends(get_repos)],
) -> Response:
    deleted = await catalog_service.delete_course(
        repos.courses,
        repos.progress,
        repos.enrollments,
        repos.wishlist,
        course_id,
        cache=cache_service,
    )
    if not deleted:
        raise HTTPException(status_code=404, detail="course not found")
    repos.on_commit(partial(invalidate_hierarchy, cache_service, course_id))
    logger.info("Course %s deleted by user=%s", course_id, principal.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stats", response_model=StatsOut)
async def stats(
    _principal: Annotated[Principal, Depends(require_role("admin"))],
    repos: Annotated[Repos, Depends(get_repos)],
) -> StatsOut:
    s = await analytics_service.admin_stats(repos.courses, repos.enrollments)
    return StatsOut(
        total_courses=s.total_courses,
        total_enrollments=s.total_enrollments,
        completed_enrollments=s.completed_enrollments,
        completion_rate=s.completion_rate,
        most_enrolled=CourseOut.of(s.most_enrolled) if s.most_enrolled else None,
    )
