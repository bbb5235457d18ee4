"""Client contact records."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..extensions import db
from .base import TimestampMixin, UserOwnedMixin, iso

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .finance import Invoice
    from .project import Project
    from .user import User


class Client(UserOwnedMixin, TimestampMixin, db.Model):
    """A customer of the freelancer; invoices are billed against it."""

    __tablename__ = "clients"
    __table_args__ = (Index("ix_clients_user_name", "user_id", "name"),)

    not_found_message = "Client not found"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    email: Mapped[str] = mapped_column(db.String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    company: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="clients")
    projects: Mapped[list["Project"]] = relationship(
        "Project",
        back_populates="client",
        passive_deletes=True,
        order_by="Project.created_at.desc()",
    )
    invoices: Mapped[list["Invoice"]] = relationship(
        "Invoice",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Invoice.created_at.desc()",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "address": self.address,
            "notes": self.notes,
            "userId": self.user_id,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "company": self.company}

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Client {self.id} {self.name}>"
