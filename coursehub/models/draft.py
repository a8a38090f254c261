"""In-memory authoring tree handed to the reconciler.

Every node carries an explicit identity tag: ``Persisted(id)`` for rows
that already exist, ``Pending(temp_key)`` for nodes created during the
editing session. The tag is a type, not a string prefix, so a temporary
key can never be mistaken for a real identifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from coursehub.models.course import Course, Difficulty, ModuleTree


@dataclass(frozen=True, slots=True)
class Pending:
    temp_key: str


@dataclass(frozen=True, slots=True)
class Persisted:
    id: UUID


NodeRef = Pending | Persisted


def ref_key(ref: NodeRef) -> str:
    """Stable key for reporting: ``pending:<key>`` or ``persisted:<uuid>``."""
    if isinstance(ref, Pending):
        return f"pending:{ref.temp_key}"
    return f"persisted:{ref.id}"


@dataclass(frozen=True, slots=True)
class CourseFields:
    title: str
    description: str
    instructor: str
    difficulty: Difficulty = Difficulty.BEGINNER
    price: Decimal = Decimal("0")
    duration: str = ""
    thumbnail: str = ""
    category: str = ""

    @staticmethod
    def of(course: Course) -> CourseFields:
        return CourseFields(
            title=course.title,
            description=course.description,
            instructor=course.instructor,
            difficulty=course.difficulty,
            price=course.price,
            duration=course.duration,
            thumbnail=course.thumbnail,
            category=course.category,
        )


@dataclass(frozen=True, slots=True)
class DraftVideo:
    ref: NodeRef
    title: str
    video_url: str
    duration: str = ""


@dataclass(frozen=True, slots=True)
class DraftModule:
    ref: NodeRef
    title: str
    description: str = ""
    videos: tuple[DraftVideo, ...] = ()


@dataclass(frozen=True, slots=True)
class DraftCourse:
    """A whole course as edited, plus the ids that were loaded.

    ``loaded_module_ids`` and ``loaded_video_ids`` are captured when the
    editing session starts; anything in them that is absent from the
    edited tree at save time gets deleted.
    """

    ref: NodeRef
    fields: CourseFields
    modules: tuple[DraftModule, ...] = ()
    loaded_module_ids: frozenset[UUID] = field(default_factory=frozenset)
    loaded_video_ids: frozenset[UUID] = field(default_factory=frozenset)

    @staticmethod
    def from_tree(course: Course, tree: list[ModuleTree]) -> DraftCourse:
        modules = tuple(
            DraftModule(
                ref=Persisted(m.module.id),
                title=m.module.title,
                description=m.module.description,
                videos=tuple(
                    DraftVideo(
                        ref=Persisted(v.id),
                        title=v.title,
                        video_url=v.video_url,
                        duration=v.duration,
                    )
                    for v in m.videos
                ),
            )
            for m in tree
        )
        return DraftCourse(
            ref=Persisted(course.id),
            fields=CourseFields.of(course),
            modules=modules,
            loaded_module_ids=frozenset(m.module.id for m in tree),
            loaded_video_ids=frozenset(v.id for m in tree for v in m.videos),
        )

    def surviving_module_ids(self) -> frozenset[UUID]:
        return frozenset(
            m.ref.id for m in self.modules if isinstance(m.ref, Persisted)
        )

    def surviving_video_ids(self) -> frozenset[UUID]:
        return frozenset(
            v.ref.id
            for m in self.modules
            for v in m.videos
            if isinstance(v.ref, Persisted)
        )
