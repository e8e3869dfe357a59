"""Users, roles and projects."""

from __future__ import annotations

from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from advance_tracker.models.base import Base, TimestampMixin


class UserRole(str, Enum):
    """Organizational roles, top to bottom of the hierarchy."""

    ADMIN = "ADMIN"
    ENGINEER = "ENGINEER"
    TECHNICIAN = "TECHNICIAN"


class ProjectStatus(str, Enum):
    """Project status values."""

    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class User(Base, TimestampMixin):
    """Employee account.

    ``manager_id`` is the direct supervisor (an ADMIN for engineers, an
    ENGINEER for technicians); ``root_admin_id`` is the ADMIN owning the
    tenant hierarchy. Both are empty for ADMIN users.
    """

    __tablename__ = "users"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(
        String, nullable=False, default=UserRole.TECHNICIAN.value
    )
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
    manager_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=True,
    )
    root_admin_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "role IN ('ADMIN', 'ENGINEER', 'TECHNICIAN')",
            name="users_role_check",
        ),
    )


class Project(Base, TimestampMixin):
    """Construction project that advances are issued against."""

    __tablename__ = "projects"

    project_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=False)
    manager_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=ProjectStatus.ACTIVE.value
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE', 'ARCHIVED')",
            name="projects_status_check",
        ),
    )
