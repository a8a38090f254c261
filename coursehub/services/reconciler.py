"""Nested Editor Reconciler.

Saves an edited course tree (a mix of persisted and pending modules and
videos) as one logical operation:

  1. Course-level fields are created or updated first. If that fails
     nothing else is attempted and the report status is ``failed``.
  2. Modules are walked in edited order. Pending nodes are created,
     persisted nodes are overwritten unconditionally. ``order_index`` is
     reassigned from list position (0-based) at both levels, so add,
     remove and reorder need no separate endpoint.
  3. Ids that were loaded but no longer appear in the tree are deleted,
     videos before modules.

Failures are per item: one bad module does not stop the rest. Every
call issued ends up as a ReconcileOutcome in the returned report; the
loop never raises past the course-level step.
"""

from __future__ import annotations

import datetime
import enum
import logging
from collections import Counter
from dataclasses import dataclass
from uuid import UUID

from coursehub.core.errors import CourseValidationError, PersistenceError
from coursehub.core.metrics import RECONCILE_OPERATIONS
from coursehub.models.course import Course
from coursehub.models.draft import (
    CourseFields,
    DraftCourse,
    DraftModule,
    DraftVideo,
    Pending,
    Persisted,
    ref_key,
)
from coursehub.repos.course_repo import CourseRepo

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class ReconcileStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    PARTIALLY_SUCCEEDED = "partially_succeeded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    entity: str  # course|module|video
    action: str  # create|update|delete
    key: str  # pending:<temp_key> or persisted:<uuid>
    ok: bool
    persisted_id: UUID | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ReconcileReport:
    course_id: UUID | None
    outcomes: tuple[ReconcileOutcome, ...]

    @property
    def status(self) -> ReconcileStatus:
        if self.course_id is None or any(
            o.entity == "course" and not o.ok for o in self.outcomes
        ):
            return ReconcileStatus.FAILED
        if any(not o.ok for o in self.outcomes):
            return ReconcileStatus.PARTIALLY_SUCCEEDED
        return ReconcileStatus.SUCCEEDED

    @property
    def failures(self) -> tuple[ReconcileOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.ok)

    def count(self, entity: str, action: str) -> int:
        """Number of successful ``action`` calls on ``entity``."""
        return sum(
            1 for o in self.outcomes if o.ok and o.entity == entity and o.action == action
        )

    def summary(self) -> dict[str, int]:
        tally = Counter(
            f"{o.entity}_{o.action}" for o in self.outcomes if o.ok
        )
        tally["failed"] = len(self.failures)
        return dict(tally)


# ---------------------------------------------------------------------------
# Validation (runs before any persistence call)
# ---------------------------------------------------------------------------


def validate_course_fields(fields: CourseFields) -> list[str]:
    problems: list[str] = []
    if not fields.title.strip():
        problems.append("title is required")
    if not fields.description.strip():
        problems.append("description is required")
    if not fields.instructor.strip():
        problems.append("instructor is required")
    if fields.price < 0:
        problems.append("price must be non-negative")
    return problems


def validate_draft(draft: DraftCourse) -> None:
    """Raise CourseValidationError if the draft cannot be saved as-is."""
    problems = validate_course_fields(draft.fields)

    seen: set[str] = set()
    for module in draft.modules:
        for ref in (module.ref, *(v.ref for v in module.videos)):
            key = ref_key(ref)
            if key in seen:
                problems.append(f"node {key} appears more than once")
            seen.add(key)

        # Persisted nodes must belong to the tree that was loaded.
        if isinstance(module.ref, Persisted) and module.ref.id not in draft.loaded_module_ids:
            problems.append(f"module {module.ref.id} is not part of this course")
        for video in module.videos:
            if isinstance(video.ref, Persisted) and video.ref.id not in draft.loaded_video_ids:
                problems.append(f"video {video.ref.id} is not part of this course")

    if problems:
        raise CourseValidationError(problems)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class _Recorder:
    def __init__(self) -> None:
        self.outcomes: list[ReconcileOutcome] = []

    def ok(
        self, entity: str, action: str, key: str, persisted_id: UUID | None
    ) -> None:
        RECONCILE_OPERATIONS.labels(entity=entity, action=action, outcome="ok").inc()
        self.outcomes.append(
            ReconcileOutcome(
                entity=entity,
                action=action,
                key=key,
                ok=True,
                persisted_id=persisted_id,
            )
        )

    def fail(self, entity: str, action: str, key: str, error: str) -> None:
        RECONCILE_OPERATIONS.labels(entity=entity, action=action, outcome="error").inc()
        logger.warning("Reconcile %s %s %s failed: %s", action, entity, key, error)
        self.outcomes.append(
            ReconcileOutcome(entity=entity, action=action, key=key, ok=False, error=error)
        )


async def reconcile_course(
    repo: CourseRepo, draft: DraftCourse, *, now: int | None = None
) -> ReconcileReport:
    """Persist ``draft`` and return a per-item report.

    Raises CourseValidationError before touching the store if the draft
    is malformed. Persistence failures never raise; they are reported.
    """
    validate_draft(draft)
    ts = _now() if now is None else now
    rec = _Recorder()

    course_id = await _save_course(repo, draft, ts, rec)
    if course_id is None:
        return ReconcileReport(course_id=None, outcomes=tuple(rec.outcomes))

    for position, module in enumerate(draft.modules):
        module_id = await _save_module(repo, course_id, module, position, rec)
        if module_id is None:
            for video in module.videos:
                action = "create" if isinstance(video.ref, Pending) else "update"
                rec.fail("video", action, ref_key(video.ref), "parent module not saved")
            continue
        for video_position, video in enumerate(module.videos):
            await _save_video(repo, module_id, video, video_position, rec)

    for video_id in sorted(draft.loaded_video_ids - draft.surviving_video_ids()):
        await _delete(repo.delete_video, "video", video_id, rec)
    for module_id in sorted(draft.loaded_module_ids - draft.surviving_module_ids()):
        await _delete(repo.delete_module, "module", module_id, rec)

    report = ReconcileReport(course_id=course_id, outcomes=tuple(rec.outcomes))
    logger.info(
        "Reconciled course=%s status=%s %s",
        course_id,
        report.status.value,
        report.summary(),
        extra={"course_id": str(course_id)},
    )
    return report


async def _save_course(
    repo: CourseRepo, draft: DraftCourse, ts: int, rec: _Recorder
) -> UUID | None:
    key = ref_key(draft.ref)
    f = draft.fields
    try:
        if isinstance(draft.ref, Pending):
            course = Course.new(
                title=f.title,
                description=f.description,
                instructor=f.instructor,
                difficulty=f.difficulty,
                price=f.price,
                duration=f.duration,
                thumbnail=f.thumbnail,
                category=f.category,
                created_at=ts,
            )
            await repo.add_course(course)
            rec.ok("course", "create", key, course.id)
            return course.id

        updated = await repo.update_course(draft.ref.id, f, ts)
    except PersistenceError as e:
        action = "create" if isinstance(draft.ref, Pending) else "update"
        rec.fail("course", action, key, str(e))
        return None

    if updated is None:
        rec.fail("course", "update", key, "course not found")
        return None
    rec.ok("course", "update", key, updated.id)
    return updated.id


async def _save_module(
    repo: CourseRepo,
    course_id: UUID,
    module: DraftModule,
    position: int,
    rec: _Recorder,
) -> UUID | None:
    """Create or overwrite one module. Returns the id videos should hang off."""
    key = ref_key(module.ref)
    if isinstance(module.ref, Pending):
        try:
            created = await repo.create_module(
                course_id=course_id,
                title=module.title,
                description=module.description,
                order_index=position,
            )
        except PersistenceError as e:
            rec.fail("module", "create", key, str(e))
            return None
        rec.ok("module", "create", key, created.id)
        return created.id

    module_id = module.ref.id
    try:
        updated = await repo.update_module(
            module_id,
            title=module.title,
            description=module.description,
            order_index=position,
        )
    except PersistenceError as e:
        # The row still exists under its durable id; its videos can be saved.
        rec.fail("module", "update", key, str(e))
        return module_id

    if updated is None:
        rec.fail("module", "update", key, "module not found")
        return None
    rec.ok("module", "update", key, module_id)
    return module_id


async def _save_video(
    repo: CourseRepo,
    module_id: UUID,
    video: DraftVideo,
    position: int,
    rec: _Recorder,
) -> None:
    key = ref_key(video.ref)
    try:
        if isinstance(video.ref, Pending):
            created = await repo.create_video(
                module_id=module_id,
                title=video.title,
                video_url=video.video_url,
                duration=video.duration,
                order_index=position,
            )
            rec.ok("video", "create", key, created.id)
            return

        updated = await repo.update_video(
            video.ref.id,
            module_id=module_id,
            title=video.title,
            video_url=video.video_url,
            duration=video.duration,
            order_index=position,
        )
    except PersistenceError as e:
        action = "create" if isinstance(video.ref, Pending) else "update"
        rec.fail("video", action, key, str(e))
        return

    if updated is None:
        rec.fail("video", "update", key, "video not found")
    else:
        rec.ok("video", "update", key, updated.id)


async def _delete(delete_fn, entity: str, entity_id: UUID, rec: _Recorder) -> None:
    key = ref_key(Persisted(entity_id))
    try:
        await delete_fn(entity_id)
    except PersistenceError as e:
        rec.fail(entity, "delete", key, str(e))
        return
    rec.ok(entity, "delete", key, entity_id)
