"""Error taxonomy shared by repositories, services, and routers.

Read paths never raise NotFound: they return None or an empty tree.
The lookup errors below are raised only by write paths that cannot
proceed without the referenced entity (enroll, toggle completion).
"""

from __future__ import annotations

from uuid import UUID


class PersistenceError(Exception):
    """A call to the persistence collaborator failed."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed" + (f": {detail}" if detail else ""))


class CourseValidationError(ValueError):
    """Course draft rejected before any persistence call was issued."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class CourseNotFoundError(LookupError):
    def __init__(self, course_id: UUID) -> None:
        self.course_id = course_id
        super().__init__(f"course {course_id} not found")


class VideoNotFoundError(LookupError):
    def __init__(self, video_id: UUID, course_id: UUID | None = None) -> None:
        self.video_id = video_id
        self.course_id = course_id
        where = f" in course {course_id}" if course_id is not None else ""
        super().__init__(f"video {video_id} not found{where}")


class DuplicateEnrollmentError(Exception):
    pass


class DuplicateWishlistError(Exception):
    pass
