"""course hierarchy, enrollments, progress, wishlist

Revision ID: 0001_course_hierarchy
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_course_hierarchy"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("instructor", sa.String(length=255), nullable=False),
        sa.Column(
            "difficulty", sa.String(length=16), nullable=False, server_default="Beginner"
        ),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("duration", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("thumbnail", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("enrollment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.Integer(), nullable=False),
        sa.CheckConstraint("price >= 0", name="ck_courses_price_non_negative"),
    )

    op.create_table(
        "course_modules",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "course_id", "order_index", deferrable=True, initially="DEFERRED"
        ),
    )

    op.create_table(
        "module_videos",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "module_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("course_modules.id"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("video_url", sa.Text(), nullable=False),
        sa.Column("duration", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "module_id", "order_index", deferrable=True, initially="DEFERRED"
        ),
    )

    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "course_id"),
        sa.CheckConstraint(
            "progress BETWEEN 0 AND 100", name="ck_enrollments_progress_range"
        ),
    )

    op.create_table(
        "user_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column(
            "video_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("module_videos.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.UniqueConstraint("user_id", "video_id"),
    )

    op.create_table(
        "wishlist",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("added_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "course_id"),
    )

    op.create_index("ix_course_modules_course_id", "course_modules", ["course_id"])
    op.create_index("ix_module_videos_module_id", "module_videos", ["module_id"])
    op.create_index("ix_user_progress_user_id", "user_progress", ["user_id"])
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])


def downgrade() -> None:
    op.drop_index("ix_enrollments_course_id", table_name="enrollments")
    op.drop_index("ix_user_progress_user_id", table_name="user_progress")
    op.drop_index("ix_module_videos_module_id", table_name="module_videos")
    op.drop_index("ix_course_modules_course_id", table_name="course_modules")
    op.drop_table("wishlist")
    op.drop_table("user_progress")
    op.drop_table("enrollments")
    op.drop_table("module_videos")
    op.drop_table("course_modules")
    op.drop_table("courses")
