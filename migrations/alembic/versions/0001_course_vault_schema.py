"""Course vault schema - users, courses, access_logs, video_analysis, knowledge_points

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Column types are portable: UUIDs are generated by the application, so no
database extension is required.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # ==========================================================================
    # courses table
    # ==========================================================================
    op.create_table(
        "courses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("course_name", sa.Text(), nullable=False),
        sa.Column("course_url", sa.Text(), nullable=False),
        sa.Column("login_url", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("encrypted_credentials", sa.Text(), nullable=False),
        sa.Column("iv", sa.Text(), nullable=False),
        sa.Column("auth_tag", sa.Text(), nullable=False),
        sa.Column("access_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_accessed", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "length(course_name) BETWEEN 1 AND 255",
            name="ck_courses_name_length",
        ),
        sa.CheckConstraint("length(iv) = 32", name="ck_courses_iv_len"),
        sa.CheckConstraint("length(auth_tag) = 32", name="ck_courses_auth_tag_len"),
    )
    op.create_index("ix_courses_user_created", "courses", ["user_id", "created_at"])

    # ==========================================================================
    # access_logs table
    # ==========================================================================
    op.create_table(
        "access_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("course_id", sa.Uuid(), nullable=False),
        sa.Column("access_type", sa.Text(), nullable=False),
        sa.Column("success", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "access_type IN ('direct', 'proxy')",
            name="ck_access_logs_access_type",
        ),
    )

    # ==========================================================================
    # video_analysis table
    # ==========================================================================
    op.create_table(
        "video_analysis",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("external_video_id", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("result_payload", sa.JSON(), nullable=True),
        sa.Column("attempt", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_video_analysis_status",
        ),
        sa.CheckConstraint("attempt >= 0", name="ck_video_analysis_attempt"),
        sa.UniqueConstraint(
            "external_video_id", "user_id", name="uix_video_analysis_video_user"
        ),
    )

    # ==========================================================================
    # knowledge_points table
    # ==========================================================================
    op.create_table(
        "knowledge_points",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("analysis_id", sa.Uuid(), nullable=False),
        sa.Column("start_time", sa.Float(), nullable=False),
        sa.Column("end_time", sa.Float(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["analysis_id"], ["video_analysis.id"], ondelete="CASCADE"),
        sa.CheckConstraint("start_time >= 0", name="ck_knowledge_points_start_time"),
        sa.CheckConstraint(
            "end_time IS NULL OR end_time >= start_time",
            name="ck_knowledge_points_end_time",
        ),
    )
    op.create_index(
        "ix_knowledge_points_analysis_start",
        "knowledge_points",
        ["analysis_id", "start_time"],
    )


def downgrade() -> None:
    op.drop_index("ix_knowledge_points_analysis_start", table_name="knowledge_points")
    op.drop_table("knowledge_points")
    op.drop_table("video_analysis")
    op.drop_table("access_logs")
    op.drop_index("ix_courses_user_created", table_name="courses")
    op.drop_table("courses")
    op.drop_table("users")
