"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("avatar_url", sa.String(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("user_id", name=op.f("pk_users")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
    )
    op.create_table(
        "startups",
        sa.Column("startup_id", sa.String(), nullable=False),
        sa.Column("founder_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["founder_id"], ["users.user_id"], name=op.f("fk_startups_founder_id_users")),
        sa.PrimaryKeyConstraint("startup_id", name=op.f("pk_startups")),
    )
    op.create_table(
        "hackathons",
        sa.Column("hackathon_id", sa.String(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["creator_id"], ["users.user_id"], name=op.f("fk_hackathons_creator_id_users")),
        sa.PrimaryKeyConstraint("hackathon_id", name=op.f("pk_hackathons")),
    )
    op.create_table(
        "applications",
        sa.Column("application_id", sa.String(), nullable=False),
        sa.Column("applicant_id", sa.String(), nullable=False),
        sa.Column("post_type", sa.String(), nullable=False),
        sa.Column("post_id", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), server_default="pending", nullable=False),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(
            ["applicant_id"], ["users.user_id"], name=op.f("fk_applications_applicant_id_users")
        ),
        sa.PrimaryKeyConstraint("application_id", name=op.f("pk_applications")),
    )
    op.create_index("ix_applications_post", "applications", ["post_type", "post_id"])

    op.create_table(
        "team_members",
        sa.Column("member_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("post_type", sa.String(), nullable=False),
        sa.Column("post_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(), server_default="member", nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], name=op.f("fk_team_members_user_id_users")),
        sa.PrimaryKeyConstraint("member_id", name=op.f("pk_team_members")),
        sa.UniqueConstraint("user_id", "post_type", "post_id", name="uq_team_members_user_post"),
    )
    op.create_index("ix_team_members_post", "team_members", ["post_type", "post_id"])

    op.create_table(
        "workspaces",
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column("post_type", sa.String(), nullable=False),
        sa.Column("post_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("workspace_id", name=op.f("pk_workspaces")),
        sa.UniqueConstraint("post_type", "post_id", name="uq_workspaces_post"),
    )
    op.create_table(
        "workspace_messages",
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column("sender_id", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.workspace_id"],
            name=op.f("fk_workspace_messages_workspace_id_workspaces"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["sender_id"], ["users.user_id"], name=op.f("fk_workspace_messages_sender_id_users")
        ),
        sa.PrimaryKeyConstraint("message_id", name=op.f("pk_workspace_messages")),
    )
    op.create_index(
        "ix_workspace_messages_workspace_created", "workspace_messages", ["workspace_id", "created_at"]
    )

    op.create_table(
        "shared_links",
        sa.Column("link_id", sa.String(), nullable=False),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.workspace_id"],
            name=op.f("fk_shared_links_workspace_id_workspaces"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["creator_id"], ["users.user_id"], name=op.f("fk_shared_links_creator_id_users")),
        sa.PrimaryKeyConstraint("link_id", name=op.f("pk_shared_links")),
    )
    op.create_index("ix_shared_links_workspace_id", "shared_links", ["workspace_id"])

    op.create_table(
        "workspace_tasks",
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("completed", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("completed_by", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(
            ["workspace_id"],
            ["workspaces.workspace_id"],
            name=op.f("fk_workspace_tasks_workspace_id_workspaces"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["creator_id"], ["users.user_id"], name=op.f("fk_workspace_tasks_creator_id_users")
        ),
        sa.ForeignKeyConstraint(
            ["completed_by"], ["users.user_id"], name=op.f("fk_workspace_tasks_completed_by_users")
        ),
        sa.PrimaryKeyConstraint("task_id", name=op.f("pk_workspace_tasks")),
    )
    op.create_index("ix_workspace_tasks_workspace_id", "workspace_tasks", ["workspace_id"])

    op.create_table(
        "screening_messages",
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("application_id", sa.String(), nullable=False),
        sa.Column("sender_id", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.application_id"],
            name=op.f("fk_screening_messages_application_id_applications"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["sender_id"], ["users.user_id"], name=op.f("fk_screening_messages_sender_id_users")
        ),
        sa.PrimaryKeyConstraint("message_id", name=op.f("pk_screening_messages")),
    )
    op.create_index(
        "ix_screening_messages_application_created", "screening_messages", ["application_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_screening_messages_application_created", table_name="screening_messages")
    op.drop_table("screening_messages")
    op.drop_index("ix_workspace_tasks_workspace_id", table_name="workspace_tasks")
    op.drop_table("workspace_tasks")
    op.drop_index("ix_shared_links_workspace_id", table_name="shared_links")
    op.drop_table("shared_links")
    op.drop_index("ix_workspace_messages_workspace_created", table_name="workspace_messages")
    op.drop_table("workspace_messages")
    op.drop_table("workspaces")
    op.drop_index("ix_team_members_post", table_name="team_members")
    op.drop_table("team_members")
    op.drop_index("ix_applications_post", table_name="applications")
    op.drop_table("applications")
    op.drop_table("hackathons")
    op.drop_table("startups")
    op.drop_table("users")
