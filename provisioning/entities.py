# provisioning/entities.py
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TypeAlias
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

UUID: TypeAlias = str

Base = declarative_base()


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )


# -----------------------
# External directories (read-only for provisioning)
# -----------------------

class Client(Base, TimestampMixin):
    __tablename__ = "clients"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    company: Mapped[str | None] = mapped_column(String)
    contact_email: Mapped[str | None] = mapped_column(String)


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[UUID] = mapped_column(String(36), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String)
    full_name: Mapped[str | None] = mapped_column(String)
    # admin, team_member, client
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="client")


class AccessToken(Base, TimestampMixin):
    """
    Opaque bearer credentials. Only the SHA-256 hex digest of the token is stored.
    """
    __tablename__ = "access_tokens"

    token_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(String(36), nullable=False, index=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# -----------------------
# Provisioned resources (owned by a Project)
# -----------------------

class Project(Base, TimestampMixin):
    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    client_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("clients.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="planning")
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_savings: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=0)
    annual_roi_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 2), nullable=False, default=0)

    __table_args__ = (
        Index("ix_projects_client_id", "client_id"),
    )


class Phase(Base, TimestampMixin):
    __tablename__ = "phases"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("projects.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="not_started")
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("project_id", "order_index", name="uq_phases_project_order"),
    )


class Task(Base, TimestampMixin):
    __tablename__ = "tasks"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    phase_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("phases.id"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    estimated_hours: Mapped[Decimal] = mapped_column(Numeric(9, 2), nullable=False, default=0)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="todo")


class ProjectMember(Base, TimestampMixin):
    __tablename__ = "project_members"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("projects.id"),
        nullable=False,
        index=True,
    )
    profile_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("profiles.id"),
        nullable=False,
    )
    role: Mapped[str | None] = mapped_column(String)
    allocation_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_client_liaison: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class PaymentSchedule(Base, TimestampMixin):
    __tablename__ = "payment_schedules"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("projects.id"),
        nullable=False,
        index=True,
    )
    phase_id: Mapped[UUID | None] = mapped_column(
        String(36),
        ForeignKey("phases.id"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date)
    description: Mapped[str | None] = mapped_column(Text)
    # pending, paid, overdue, cancelled
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")


class DashboardConfig(Base, TimestampMixin):
    __tablename__ = "dashboard_configs"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("projects.id"),
        nullable=False,
        unique=True,
    )
    widgets: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    branding: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)
    permissions: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)
    notifications: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)
