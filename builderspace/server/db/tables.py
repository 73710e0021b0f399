"""SQLAlchemy ORM models.

These are the single source of truth for the database schema.  Alembic reads
``Base.metadata`` to autogenerate migration scripts.

Uses SQLAlchemy 2.0 declarative style with ``Mapped`` type annotations.
Creation timestamps get a Python-side default (microsecond resolution, so
"order by creation time" is stable) plus a server default for rows inserted
outside the ORM.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Timezone-aware timestamp type for all datetime columns.
TimestampTZ = DateTime(timezone=True)


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base with naming convention for constraints."""

    pass


Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


# ---------------------------------------------------------------------------
# Users and posts
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), unique=True)
    name: Mapped[str]
    avatar_url: Mapped[str | None]
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())


class Startup(Base):
    __tablename__ = "startups"

    startup_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    founder_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    name: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())


class Hackathon(Base):
    __tablename__ = "hackathons"

    hackathon_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    name: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (Index("ix_applications_post", "post_type", "post_id"),)

    application_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    applicant_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    post_type: Mapped[str]
    post_id: Mapped[str]
    message: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(default="pending", server_default="pending")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        TimestampTZ, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


# ---------------------------------------------------------------------------
# Teams and workspaces
# ---------------------------------------------------------------------------


class TeamMember(Base):
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("user_id", "post_type", "post_id", name="uq_team_members_user_post"),
        Index("ix_team_members_post", "post_type", "post_id"),
    )

    member_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    post_type: Mapped[str]
    post_id: Mapped[str]
    role: Mapped[str] = mapped_column(default="member", server_default="member")
    joined_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())


class Workspace(Base):
    __tablename__ = "workspaces"
    __table_args__ = (UniqueConstraint("post_type", "post_id", name="uq_workspaces_post"),)

    workspace_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    post_type: Mapped[str]
    post_id: Mapped[str]
    name: Mapped[str]
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        TimestampTZ, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class WorkspaceMessage(Base):
    __tablename__ = "workspace_messages"
    __table_args__ = (Index("ix_workspace_messages_workspace_created", "workspace_id", "created_at"),)

    message_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.workspace_id", ondelete="CASCADE"))
    sender_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())


class SharedLink(Base):
    __tablename__ = "shared_links"
    __table_args__ = (Index("ix_shared_links_workspace_id", "workspace_id"),)

    link_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.workspace_id", ondelete="CASCADE"))
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    title: Mapped[str] = mapped_column(String(200))
    url: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        TimestampTZ, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class WorkspaceTask(Base):
    __tablename__ = "workspace_tasks"
    __table_args__ = (Index("ix_workspace_tasks_workspace_id", "workspace_id"),)

    task_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(ForeignKey("workspaces.workspace_id", ondelete="CASCADE"))
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    completed: Mapped[bool] = mapped_column(default=False, server_default="false")
    completed_by: Mapped[str | None] = mapped_column(ForeignKey("users.user_id"))
    completed_at: Mapped[datetime | None] = mapped_column(TimestampTZ)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        TimestampTZ, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


# ---------------------------------------------------------------------------
# Screening chat
# ---------------------------------------------------------------------------


class ScreeningMessage(Base):
    __tablename__ = "screening_messages"
    __table_args__ = (Index("ix_screening_messages_application_created", "application_id", "created_at"),)

    message_id: Mapped[str] = mapped_column(primary_key=True, default=new_id)
    application_id: Mapped[str] = mapped_column(ForeignKey("applications.application_id", ondelete="CASCADE"))
    sender_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, default=utcnow, server_default=func.now())
