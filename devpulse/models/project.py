"""Project and task models owned by a user."""
from __future__ import annotations

import enum
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy import Index, case, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..errors import ValidationFailure
from ..extensions import db
from .base import OwnedMixin, TimestampMixin, UserOwnedMixin, iso, money, utcnow

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from .client import Client
    from .finance import Invoice
    from .user import User


class ProjectStatus(str, enum.Enum):
    """Lifecycle states for projects."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


class TaskStatus(str, enum.Enum):
    """Task progress states."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, enum.Enum):
    """Task urgency levels, lowest first."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


def parse_enum(enum_cls, raw: Any, field: str):
    """Resolve a raw request value into ``enum_cls`` or raise a field error."""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw or "").strip().upper())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailure.for_fields(
            [{"field": field, "message": f"{field} must be one of: {allowed}"}]
        ) from None


class Project(UserOwnedMixin, TimestampMixin, db.Model):
    """Unit of work, optionally linked to a client."""

    __tablename__ = "projects"
    __table_args__ = (Index("ix_projects_user_status", "user_id", "status"),)

    not_found_message = "Project not found"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    status: Mapped[ProjectStatus] = mapped_column(
        db.Enum(ProjectStatus, native_enum=False, validate_strings=True, name="project_status"),
        nullable=False,
        default=ProjectStatus.PENDING,
        server_default=text("'PENDING'"),
    )
    budget: Mapped[float | None] = mapped_column(db.Numeric(12, 2), nullable=True)
    start_date: Mapped[date | None] = mapped_column(db.Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(db.Date, nullable=True)
    client_id: Mapped[int | None] = mapped_column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    user: Mapped["User"] = relationship("User", back_populates="projects")
    client: Mapped["Client | None"] = relationship("Client", back_populates="projects")
    tasks: Mapped[list["Task"]] = relationship(
        "Task",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Task.created_at.desc()",
    )
    invoices: Mapped[list["Invoice"]] = relationship(
        "Invoice",
        back_populates="project",
        passive_deletes=True,
        order_by="Invoice.created_at.desc()",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "budget": money(self.budget) if self.budget is not None else None,
            "startDate": iso(self.start_date),
            "endDate": iso(self.end_date),
            "clientId": self.client_id,
            "userId": self.user_id,
            "client": {"id": self.client.id, "name": self.client.name} if self.client else None,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def task_stats(self) -> Dict[str, Any]:
        tasks = list(self.tasks)
        return {
            "total": len(tasks),
            "completed": sum(1 for task in tasks if task.status == TaskStatus.COMPLETED),
            "inProgress": sum(1 for task in tasks if task.status == TaskStatus.IN_PROGRESS),
            "totalHours": sum(task.hours or 0 for task in tasks),
        }

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Project {self.id} {self.name}>"


class Task(OwnedMixin, TimestampMixin, db.Model):
    """Unit of effort inside a project; owned through the project's user."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_project_status", "project_id", "status"),
        Index("ix_tasks_due_date", "due_date"),
    )

    not_found_message = "Task not found"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        db.Enum(TaskStatus, native_enum=False, validate_strings=True, name="task_status"),
        nullable=False,
        default=TaskStatus.TODO,
        server_default=text("'TODO'"),
    )
    priority: Mapped[TaskPriority] = mapped_column(
        db.Enum(TaskPriority, native_enum=False, validate_strings=True, name="task_priority"),
        nullable=False,
        default=TaskPriority.MEDIUM,
        server_default=text("'MEDIUM'"),
    )
    hours: Mapped[float] = mapped_column(db.Float, nullable=False, default=0.0, server_default=text("0"))
    due_date: Mapped[datetime | None] = mapped_column(db.DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(db.DateTime, nullable=True)

    project: Mapped[Project] = relationship("Project", back_populates="tasks")

    @classmethod
    def owned_by(cls, user_id: int):
        return cls.query.join(Project, cls.project_id == Project.id).filter(Project.user_id == user_id)

    @classmethod
    def priority_rank(cls):
        """SQL expression ranking priorities so URGENT sorts highest."""
        return case(
            (cls.priority == TaskPriority.URGENT, 3),
            (cls.priority == TaskPriority.HIGH, 2),
            (cls.priority == TaskPriority.MEDIUM, 1),
            else_=0,
        )

    def transition_to(self, status: TaskStatus, now: datetime | None = None) -> None:
        """Move to ``status``, keeping ``completed_at`` in step with it."""
        if status == self.status and (status != TaskStatus.COMPLETED or self.completed_at):
            return
        self.status = status
        if status == TaskStatus.COMPLETED:
            self.completed_at = now or utcnow()
        else:
            self.completed_at = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "hours": self.hours or 0,
            "dueDate": iso(self.due_date),
            "completedAt": iso(self.completed_at),
            "projectId": self.project_id,
            "project": {"id": self.project.id, "name": self.project.name} if self.project else None,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Task {self.id} {self.title}>"
