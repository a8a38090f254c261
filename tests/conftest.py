from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from coursehub.api.dependencies import (
    course_repo,
    enrollment_repo,
    progress_repo,
    wishlist_repo,
)
from coursehub.main import app
from coursehub.models.course import Course
from coursehub.models.draft import (
    CourseFields,
    DraftCourse,
    DraftModule,
    DraftVideo,
    Pending,
)
from coursehub.repos.course_repo import InMemoryCourseRepo
from coursehub.services import token_service
from coursehub.services.cache import cache_service
from coursehub.services.reconciler import reconcile_course

# Ensure repo root is on sys.path so `import coursehub` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear the in-memory repositories between tests."""
    course_repo._courses.clear()
    course_repo._modules.clear()
    course_repo._videos.clear()
    progress_repo._store.clear()
    enrollment_repo._store.clear()
    wishlist_repo._store.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


@pytest.fixture
def token() -> str:
    """Token with the default learner role."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Course helpers
# ---------------------------------------------------------------------------


def course_fields(title: str = "Python Fundamentals", **overrides) -> CourseFields:
    values = {
        "title": title,
        "description": "Learn Python from scratch",
        "instructor": "Ada",
    }
    values.update(overrides)
    return CourseFields(**values)


def pending_draft(shape: list[int], title: str = "Python Fundamentals") -> DraftCourse:
    """A brand-new course with ``len(shape)`` modules of ``shape[i]`` videos."""
    return DraftCourse(
        ref=Pending("course"),
        fields=course_fields(title),
        modules=tuple(
            DraftModule(
                ref=Pending(f"m{i}"),
                title=f"Module {i}",
                videos=tuple(
                    DraftVideo(
                        ref=Pending(f"m{i}v{j}"),
                        title=f"Video {i}.{j}",
                        video_url=f"https://videos.example.com/{i}/{j}",
                    )
                    for j in range(count)
                ),
            )
            for i, count in enumerate(shape)
        ),
    )


def seed_course(
    repo: InMemoryCourseRepo, shape: list[int], title: str = "Python Fundamentals"
) -> Course:
    """Persist a course with the given module/video shape and return it."""
    report = asyncio.run(reconcile_course(repo, pending_draft(shape, title)))
    assert report.course_id is not None
    course = asyncio.run(repo.get_course(report.course_id))
    assert course is not None
    return course
