from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID, uuid4


class Difficulty(str, enum.Enum):
    BEGINNER = "Beginner"
    AVERAGE = "Average"
    ADVANCED = "Advanced"


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    description: str
    instructor: str
    difficulty: Difficulty = Difficulty.BEGINNER
    price: Decimal = Decimal("0")
    duration: str = ""
    thumbnail: str = ""
    category: str = ""
    enrollment_count: int = 0
    created_at: int = 0
    updated_at: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.difficulty, Difficulty):
            object.__setattr__(self, "difficulty", Difficulty(self.difficulty))
        if self.price < 0:
            raise ValueError("price must be non-negative")

    @staticmethod
    def new(
        *,
        title: str,
        description: str,
        instructor: str,
        created_at: int,
        difficulty: Difficulty = Difficulty.BEGINNER,
        price: Decimal = Decimal("0"),
        duration: str = "",
        thumbnail: str = "",
        category: str = "",
    ) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            description=description,
            instructor=instructor,
            difficulty=difficulty,
            price=price,
            duration=duration,
            thumbnail=thumbnail,
            category=category,
            created_at=created_at,
            updated_at=created_at,
        )


@dataclass(frozen=True, slots=True)
class Module:
    id: UUID
    course_id: UUID
    title: str
    order_index: int
    description: str = ""

    @staticmethod
    def new(
        *, course_id: UUID, title: str, order_index: int, description: str = ""
    ) -> Module:
        return Module(
            id=uuid4(),
            course_id=course_id,
            title=title,
            order_index=order_index,
            description=description,
        )


@dataclass(frozen=True, slots=True)
class Video:
    id: UUID
    module_id: UUID
    title: str
    video_url: str
    order_index: int
    duration: str = ""

    @staticmethod
    def new(
        *,
        module_id: UUID,
        title: str,
        video_url: str,
        order_index: int,
        duration: str = "",
    ) -> Video:
        return Video(
            id=uuid4(),
            module_id=module_id,
            title=title,
            video_url=video_url,
            order_index=order_index,
            duration=duration,
        )


@dataclass(frozen=True, slots=True)
class ModuleTree:
    """A module together with its videos, both ordered by order_index."""

    module: Module
    videos: tuple[Video, ...] = field(default_factory=tuple)

    @property
    def id(self) -> UUID:
        return self.module.id


def sort_tree(modules: list[ModuleTree]) -> list[ModuleTree]:
    """Order modules, and the videos inside each, by order_index ascending."""
    return [
        ModuleTree(
            module=m.module,
            videos=tuple(sorted(m.videos, key=lambda v: v.order_index)),
        )
        for m in sorted(modules, key=lambda m: m.module.order_index)
    ]


def video_ids(tree: list[ModuleTree]) -> frozenset[UUID]:
    return frozenset(v.id for m in tree for v in m.videos)
