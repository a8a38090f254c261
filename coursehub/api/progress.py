"""Per-video completion and the derived course percentage.

  GET  /v1/progress/courses/{course_id}       -> completed ids + percentage
  POST /v1/progress/videos/{video_id}/toggle  -> flip one video, resync enrollment

The toggle response carries the freshly computed percentage so the
client never has to refetch to redraw its progress bar.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from coursehub.api.dependencies import Repos, get_repos, require_user
from coursehub.core.errors import VideoNotFoundError
from coursehub.models.principal import Principal
from coursehub.models.progress import CourseProgress
from coursehub.services import progress_service
from coursehub.services.cache import cache_service

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class CourseProgressOut(BaseModel):
    course_id: str
    total_videos: int
    completed_video_ids: list[str]
    percent_complete: int

    @staticmethod
    def of(p: CourseProgress) -> CourseProgressOut:
        return CourseProgressOut(
            course_id=str(p.course_id),
            total_videos=p.total_videos,
            completed_video_ids=sorted(str(v) for v in p.completed_video_ids),
            percent_complete=p.percent_complete,
        )


class ToggleIn(BaseModel):
    course_id: UUID


class ToggleOut(BaseModel):
    video_id: str
    state: str
    synced: bool
    progress: CourseProgressOut


@router.get("/courses/{course_id}", response_model=CourseProgressOut)
async def get_course_progress(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> CourseProgressOut:
    p = await progress_service.course_progress(
        repos.courses,
        repos.progress,
        principal.learner_id,
        course_id,
        cache=cache_service,
    )
    return CourseProgressOut.of(p)


@router.post("/videos/{video_id}/toggle", response_model=ToggleOut)
async def toggle_video(
    video_id: UUID,
    body: ToggleIn,
    principal: Annotated[Principal, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> ToggleOut:
    try:
        result = await progress_service.toggle_and_sync(
            repos.courses,
            repos.progress,
            repos.enrollments,
            principal.learner_id,
            body.course_id,
            video_id,
            cache=cache_service,
        )
    except VideoNotFoundError:
        raise HTTPException(status_code=404, detail="video not found in course") from None

    return ToggleOut(
        video_id=str(result.video_id),
        state=result.state.value,
        synced=result.synced,
        progress=CourseProgressOut.of(result.progress),
    )
