"""Initial database schema."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "media_object",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("object_key", sa.String(length=512), nullable=False, unique=True),
        sa.Column("reference_url", sa.String(length=640), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column(
            "content_type",
            sa.String(length=128),
            nullable=False,
            server_default="application/octet-stream",
        ),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("associated_entity_id", sa.String(length=64)),
        sa.Column("used_flag", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_media_object_reference_url", "media_object", ["reference_url"])
    op.create_index("ix_media_object_owner_id", "media_object", ["owner_id"])
    op.create_index("ix_media_object_associated_entity_id", "media_object", ["associated_entity_id"])

    op.create_table(
        "post",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("author_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("summary", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_post_author_id", "post", ["author_id"])

    op.create_table(
        "comment",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("post_id", sa.String(length=64), sa.ForeignKey("post.id"), nullable=False),
        sa.Column("author_id", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_comment_post_id", "comment", ["post_id"])

    op.create_table(
        "app_user",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("bio", sa.Text()),
        sa.Column("avatar", sa.String(length=640)),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("last_login_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "scheduled_task",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("task_type", sa.String(length=64), nullable=False),
        sa.Column("cron_expression", sa.String(length=64), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="idle"),
        sa.Column("last_run_at", sa.DateTime()),
        sa.Column("next_run_at", sa.DateTime()),
        sa.Column("last_result", sa.JSON()),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_scheduled_task_name", "scheduled_task", ["name"])
    op.create_index("ix_scheduled_task_task_type", "scheduled_task", ["task_type"])
    op.create_index("ix_scheduled_task_enabled", "scheduled_task", ["enabled"])
    op.create_index("ix_scheduled_task_status", "scheduled_task", ["status"])
    op.create_index("ix_scheduled_task_next_run_at", "scheduled_task", ["next_run_at"])


def downgrade() -> None:
    op.drop_table("scheduled_task")
    op.drop_table("app_user")
    op.drop_table("comment")
    op.drop_table("post")
    op.drop_table("media_object")
