"""Per-user GitHub activity snapshot."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy import UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..extensions import db
from .base import TimestampMixin, iso, utcnow

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .user import User


CONTRIBUTIONS_FROM_GITHUB = "github"
CONTRIBUTIONS_UNAVAILABLE = "unavailable"


class GitHubStats(TimestampMixin, db.Model):
    """Overwritten on each sync; one row per user."""

    __tablename__ = "github_stats"
    __table_args__ = (UniqueConstraint("user_id", name="uq_github_stats_user"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    total_commits: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0, server_default=text("0"))
    total_repos: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0, server_default=text("0"))
    total_prs: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0, server_default=text("0"))
    total_issues: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0, server_default=text("0"))
    contribution_data: Mapped[list] = mapped_column(db.JSON, nullable=False, default=list)
    contribution_source: Mapped[str] = mapped_column(
        db.String(16), nullable=False, default=CONTRIBUTIONS_UNAVAILABLE
    )
    last_sync_at: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)

    user: Mapped["User"] = relationship("User", back_populates="github_stats")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "totalCommits": self.total_commits,
            "totalRepos": self.total_repos,
            "totalPRs": self.total_prs,
            "totalIssues": self.total_issues,
            "contributionData": self.contribution_data or [],
            "contributionSource": self.contribution_source,
            "lastSyncAt": iso(self.last_sync_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr helper
        return f"<GitHubStats user={self.user_id} commits={self.total_commits}>"
