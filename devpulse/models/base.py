"""Shared model mixins for per-user ownership and auditing."""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from ..errors import NotFound
from ..extensions import db


# Largest value a signed 64-bit INTEGER primary key can hold.
MAX_ROW_ID = 2**63 - 1


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def money(value: Decimal | float | None) -> float:
    return float(value) if value is not None else 0.0


class TimestampMixin:
    """Adds immutable creation and managed update timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        db.DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        db.DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False
    )


class OwnedMixin:
    """Routes every lookup through the owning user.

    Models that carry ``user_id`` filter on it directly; models owned through a
    parent override :meth:`owned_by` with the join chain.
    """

    not_found_message = "Resource not found"

    @classmethod
    def owned_by(cls, user_id: int):
        return cls.query.filter_by(user_id=user_id)

    @classmethod
    def get_owned(cls, entity_id: int, user_id: int):
        """Fetch by id within the caller's ownership or raise NotFound."""
        if isinstance(entity_id, int) and abs(entity_id) > MAX_ROW_ID:
            raise NotFound(cls.not_found_message)
        entity = cls.owned_by(user_id).filter(cls.id == entity_id).first()
        if entity is None:
            raise NotFound(cls.not_found_message)
        return entity


class UserOwnedMixin(OwnedMixin):
    """Adds a cascading ``user_id`` foreign key."""

    @declared_attr.directive
    def user_id(cls) -> Mapped[int]:  # noqa: D401 - SQLAlchemy pattern
        return mapped_column(
            db.Integer,
            db.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
