from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.core.errors import PersistenceError
from coursehub.models.course import Course, Module, ModuleTree, Video, sort_tree
from coursehub.models.draft import CourseFields


class CourseRepo(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def list_courses(self) -> list[Course]: ...
    async def add_course(self, course: Course) -> Course: ...
    async def update_course(
        self, course_id: UUID, fields: CourseFields, updated_at: int
    ) -> Course | None: ...
    async def set_enrollment_count(self, course_id: UUID, count: int) -> None: ...
    async def delete_course(self, course_id: UUID) -> bool: ...

    async def list_modules_with_videos(self, course_id: UUID) -> list[ModuleTree]: ...
    async def list_modules(self, course_id: UUID) -> list[Module]: ...
    async def list_videos(self, module_id: UUID) -> list[Video]: ...

    async def create_module(
        self, *, course_id: UUID, title: str, description: str, order_index: int
    ) -> Module: ...
    async def update_module(
        self, module_id: UUID, *, title: str, description: str, order_index: int
    ) -> Module | None: ...
    async def delete_module(self, module_id: UUID) -> bool: ...

    async def create_video(
        self,
        *,
        module_id: UUID,
        title: str,
        video_url: str,
        duration: str,
        order_index: int,
    ) -> Video: ...
    async def update_video(
        self,
        video_id: UUID,
        *,
        module_id: UUID,
        title: str,
        video_url: str,
        duration: str,
        order_index: int,
    ) -> Video | None: ...
    async def delete_video(self, video_id: UUID) -> bool: ...


class InMemoryCourseRepo:
    """Dict-backed CourseRepo.

    Foreign keys are checked the way the database checks them: a module
    needs its course, a video needs its module, and a module or course
    cannot be deleted while children still reference it.
    """

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._modules: dict[UUID, Module] = {}
        self._videos: dict[UUID, Video] = {}

    # --- courses ---

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def list_courses(self) -> list[Course]:
        return sorted(self._courses.values(), key=lambda c: c.created_at, reverse=True)

    async def add_course(self, course: Course) -> Course:
        if course.id in self._courses:
            raise PersistenceError("add_course", f"course {course.id} already exists")
        self._courses[course.id] = course
        return course

    async def update_course(
        self, course_id: UUID, fields: CourseFields, updated_at: int
    ) -> Course | None:
        existing = self._courses.get(course_id)
        if existing is None:
            return None
        updated = replace(
            existing,
            title=fields.title,
            description=fields.description,
            instructor=fields.instructor,
            difficulty=fields.difficulty,
            price=fields.price,
            duration=fields.duration,
            thumbnail=fields.thumbnail,
            category=fields.category,
            updated_at=updated_at,
        )
        self._courses[course_id] = updated
        return updated

    async def set_enrollment_count(self, course_id: UUID, count: int) -> None:
        existing = self._courses.get(course_id)
        if existing is not None:
            self._courses[course_id] = replace(existing, enrollment_count=count)

    async def delete_course(self, course_id: UUID) -> bool:
        if any(m.course_id == course_id for m in self._modules.values()):
            raise PersistenceError("delete_course", "course still has modules")
        return self._courses.pop(course_id, None) is not None

    # --- hierarchy reads ---

    async def list_modules_with_videos(self, course_id: UUID) -> list[ModuleTree]:
        tree = [
            ModuleTree(
                module=m,
                videos=tuple(v for v in self._videos.values() if v.module_id == m.id),
            )
            for m in self._modules.values()
            if m.course_id == course_id
        ]
        return sort_tree(tree)

    async def list_modules(self, course_id: UUID) -> list[Module]:
        modules = [m for m in self._modules.values() if m.course_id == course_id]
        return sorted(modules, key=lambda m: m.order_index)

    async def list_videos(self, module_id: UUID) -> list[Video]:
        videos = [v for v in self._videos.values() if v.module_id == module_id]
        return sorted(videos, key=lambda v: v.order_index)

    # --- modules ---

    async def create_module(
        self, *, course_id: UUID, title: str, description: str, order_index: int
    ) -> Module:
        if course_id not in self._courses:
            raise PersistenceError("create_module", f"course {course_id} does not exist")
        module = Module.new(
            course_id=course_id,
            title=title,
            description=description,
            order_index=order_index,
        )
        self._modules[module.id] = module
        return module

    async def update_module(
        self, module_id: UUID, *, title: str, description: str, order_index: int
    ) -> Module | None:
        existing = self._modules.get(module_id)
        if existing is None:
            return None
        updated = replace(
            existing, title=title, description=description, order_index=order_index
        )
        self._modules[module_id] = updated
        return updated

    async def delete_module(self, module_id: UUID) -> bool:
        if any(v.module_id == module_id for v in self._videos.values()):
            raise PersistenceError("delete_module", "module still has videos")
        return self._modules.pop(module_id, None) is not None

    # --- videos ---

    async def create_video(
        self,
        *,
        module_id: UUID,
        title: str,
        video_url: str,
        duration: str,
        order_index: int,
    ) -> Video:
        if module_id not in self._modules:
            raise PersistenceError("create_video", f"module {module_id} does not exist")
        video = Video.new(
            module_id=module_id,
            title=title,
            video_url=video_url,
            duration=duration,
            order_index=order_index,
        )
        self._videos[video.id] = video
        return video

    async def update_video(
        self,
        video_id: UUID,
        *,
        module_id: UUID,
        title: str,
        video_url: str,
        duration: str,
        order_index: int,
    ) -> Video | None:
        existing = self._videos.get(video_id)
        if existing is None:
            return None
        if module_id not in self._modules:
            raise PersistenceError("update_video", f"module {module_id} does not exist")
        updated = replace(
            existing,
            module_id=module_id,
            title=title,
            video_url=video_url,
            duration=duration,
            order_index=order_index,
        )
        self._videos[video_id] = updated
        return updated

    async def delete_video(self, video_id: UUID) -> bool:
        return self._videos.pop(video_id, None) is not None
