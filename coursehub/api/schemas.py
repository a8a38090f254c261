"""Pydantic response models shared by the course-facing routers."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from coursehub.models.course import Course, ModuleTree, Video


class CourseOut(BaseModel):
    id: str
    title: str
    description: str
    instructor: str
    difficulty: str
    price: Decimal
    duration: str
    thumbnail: str
    category: str
    enrollment_count: int
    created_at: int
    updated_at: int

    @staticmethod
    def of(course: Course) -> CourseOut:
        return CourseOut(
            id=str(course.id),
            title=course.title,
            description=course.description,
            instructor=course.instructor,
            difficulty=course.difficulty.value,
            price=course.price,
            duration=course.duration,
            thumbnail=course.thumbnail,
            category=course.category,
            enrollment_count=course.enrollment_count,
            created_at=course.created_at,
            updated_at=course.updated_at,
        )


class VideoOut(BaseModel):
    id: str
    module_id: str
    title: str
    video_url: str
    duration: str
    order_index: int

    @staticmethod
    def of(video: Video) -> VideoOut:
        return VideoOut(
            id=str(video.id),
            module_id=str(video.module_id),
            title=video.title,
            video_url=video.video_url,
            duration=video.duration,
            order_index=video.order_index,
        )


class ModuleOut(BaseModel):
    id: str
    course_id: str
    title: str
    description: str
    order_index: int
    videos: list[VideoOut]

    @staticmethod
    def of(tree: ModuleTree) -> ModuleOut:
        m = tree.module
        return ModuleOut(
            id=str(m.id),
            course_id=str(m.course_id),
            title=m.title,
            description=m.description,
            order_index=m.order_index,
            videos=[VideoOut.of(v) for v in tree.videos],
        )
