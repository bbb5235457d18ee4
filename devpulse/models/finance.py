"""Invoice, line item and numbering models."""
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict

from sqlalchemy import Index, Numeric, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..errors import InvalidTransition
from ..extensions import db
from .base import OwnedMixin, TimestampMixin, iso, money, utcnow
from .client import Client

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .project import Project


class InvoiceStatus(str, enum.Enum):
    """Lifecycle states for invoices."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


INVOICE_TRANSITIONS: Dict[InvoiceStatus, frozenset] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.SENT: frozenset(
        {InvoiceStatus.DRAFT, InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED}
    ),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    # Reopening a paid invoice sends it back out; it never returns to draft.
    InvoiceStatus.PAID: frozenset({InvoiceStatus.SENT}),
    InvoiceStatus.CANCELLED: frozenset({InvoiceStatus.DRAFT}),
}


class Invoice(OwnedMixin, TimestampMixin, db.Model):
    """Billing document for a client; owned through the client's user."""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("number", name="uq_invoices_number"),
        Index("ix_invoices_client_status", "client_id", "status"),
        Index("ix_invoices_paid_date", "paid_date"),
    )

    not_found_message = "Invoice not found"

    id: Mapped[int] = mapped_column(primary_key=True)
    number: Mapped[str] = mapped_column(db.String(32), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        db.Enum(InvoiceStatus, native_enum=False, validate_strings=True, name="invoice_status"),
        nullable=False,
        default=InvoiceStatus.DRAFT,
        server_default=text("'DRAFT'"),
    )
    issue_date: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)
    due_date: Mapped[datetime] = mapped_column(db.DateTime, nullable=False)
    paid_date: Mapped[datetime | None] = mapped_column(db.DateTime, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default=text("0"))
    tax: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, server_default=text("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default=text("0"))
    notes: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    client_id: Mapped[int] = mapped_column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[int | None] = mapped_column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    client: Mapped[Client] = relationship("Client", back_populates="invoices")
    project: Mapped["Project | None"] = relationship("Project", back_populates="invoices")
    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceItem.id",
    )

    @classmethod
    def owned_by(cls, user_id: int):
        return cls.query.join(Client, cls.client_id == Client.id).filter(Client.user_id == user_id)

    @property
    def tax_amount(self) -> Decimal:
        return Decimal(self.total or 0) - Decimal(self.amount or 0)

    def can_transition_to(self, status: InvoiceStatus) -> bool:
        return status == self.status or status in INVOICE_TRANSITIONS.get(self.status, frozenset())

    def transition_to(self, status: InvoiceStatus, now: datetime | None = None) -> None:
        """Apply a status change and its ``paid_date`` side effect together."""
        if status == self.status:
            return
        if not self.can_transition_to(status):
            raise InvalidTransition(f"Cannot change invoice status from {self.status.value} to {status.value}")
        self.status = status
        self.paid_date = (now or utcnow()) if status == InvoiceStatus.PAID else None

    def to_dict(self, *, detail: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "number": self.number,
            "status": self.status.value,
            "issueDate": iso(self.issue_date),
            "dueDate": iso(self.due_date),
            "paidDate": iso(self.paid_date),
            "amount": money(self.amount),
            "tax": money(self.tax),
            "taxAmount": money(self.tax_amount),
            "total": money(self.total),
            "notes": self.notes,
            "clientId": self.client_id,
            "projectId": self.project_id,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if detail:
            payload["client"] = self.client.to_dict() if self.client else None
            payload["project"] = self.project.to_dict() if self.project else None
            payload["items"] = [item.to_dict() for item in self.items]
        else:
            payload["client"] = self.client.summary() if self.client else None
            payload["project"] = {"id": self.project.id, "name": self.project.name} if self.project else None
            payload["itemCount"] = len(self.items)
        return payload

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Invoice {self.number} {self.total}>"


class InvoiceItem(db.Model):
    """Immutable line item."""

    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    invoice_id: Mapped[int] = mapped_column(
        db.Integer,
        db.ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(db.String(512), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    invoice: Mapped[Invoice] = relationship("Invoice", back_populates="items")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "quantity": money(self.quantity),
            "unitPrice": money(self.unit_price),
            "total": money(self.total),
        }


class InvoiceSequence(db.Model):
    """Per-month invoice counter, incremented atomically."""

    __tablename__ = "invoice_sequences"

    period: Mapped[str] = mapped_column(db.String(6), primary_key=True)
    last_value: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
