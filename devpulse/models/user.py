"""User accounts owning clients, projects and GitHub stats."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy.orm import Mapped, mapped_column, relationship
from werkzeug.security import check_password_hash, generate_password_hash

from ..extensions import db
from .base import TimestampMixin, iso

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .client import Client
    from .github import GitHubStats
    from .project import Project


class User(TimestampMixin, db.Model):
    """An account; everything else in the schema hangs off it."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(db.String(255), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(db.String(255), nullable=False)
    avatar: Mapped[str | None] = mapped_column(db.String(512), nullable=True)
    github_token: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    github_username: Mapped[str | None] = mapped_column(db.String(255), nullable=True)

    clients: Mapped[list["Client"]] = relationship(
        "Client",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    projects: Mapped[list["Project"]] = relationship(
        "Project",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    github_stats: Mapped["GitHubStats | None"] = relationship(
        "GitHubStats",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    def set_password(self, raw_password: str) -> None:
        """Hash and store a password using Werkzeug's PBKDF2 implementation."""
        self.password_hash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        """Validate a password against the stored hash."""
        return check_password_hash(self.password_hash, raw_password)

    def connect_github(self, token: str, username: str, avatar: str | None) -> None:
        self.github_token = token
        self.github_username = username
        if avatar:
            self.avatar = avatar

    def disconnect_github(self) -> None:
        self.github_token = None
        self.github_username = None

    @property
    def github_connected(self) -> bool:
        return bool(self.github_token)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "avatar": self.avatar,
            "githubUsername": self.github_username,
            "githubConnected": self.github_connected,
            "createdAt": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr helper
        return f"<User {self.email}>"
