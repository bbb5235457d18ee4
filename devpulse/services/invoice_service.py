"""Invoice numbering, totals and status transitions."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationFailure
from ..extensions import db
from ..models import (
    Client,
    Invoice,
    InvoiceItem,
    InvoiceSequence,
    InvoiceStatus,
    Project,
    parse_enum,
    utcnow,
)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")
_SEQUENCE_ATTEMPTS = 3


def to_cents(value: Decimal) -> Decimal:
    """Quantize to cents, rounding half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _decimal(raw: Any, field: str) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationFailure.for_fields([{"field": field, "message": f"{field} must be a number"}])
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise ValidationFailure.for_fields(
            [{"field": field, "message": f"{field} must be a number"}]
        ) from None
    if not value.is_finite():
        raise ValidationFailure.for_fields([{"field": field, "message": f"{field} must be a number"}])
    if abs(value) > MAX_AMOUNT:
        raise ValidationFailure.for_fields([{"field": field, "message": f"{field} is too large"}])
    return value


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return to_cents(self.quantity * self.unit_price)


@dataclass(frozen=True)
class InvoiceTotals:
    amount: Decimal
    tax: Decimal
    tax_amount: Decimal
    total: Decimal


def parse_line_items(raw_items: Any) -> List[LineItem]:
    """Keep only description, quantity and unit price from client input.

    Quantity and unit price are rounded to cents up front, the scale they are
    stored at, so persisted items keep ``total == quantity * unitPrice``.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationFailure.for_fields([{"field": "items", "message": "At least one item is required"}])

    items: List[LineItem] = []
    errors: List[Dict[str, str]] = []
    for index, raw in enumerate(raw_items):
        prefix = f"items[{index}]"
        if not isinstance(raw, dict):
            errors.append({"field": prefix, "message": "Item must be an object"})
            continue
        description = str(raw.get("description") or "").strip()
        if not description:
            errors.append({"field": f"{prefix}.description", "message": "Description is required"})
        try:
            quantity = to_cents(_decimal(raw.get("quantity"), f"{prefix}.quantity"))
            unit_price = to_cents(_decimal(raw.get("unitPrice"), f"{prefix}.unitPrice"))
        except ValidationFailure as exc:
            errors.extend(exc.errors or [])
            continue
        if quantity <= 0:
            errors.append({"field": f"{prefix}.quantity", "message": "Quantity must be greater than zero"})
        if unit_price < 0:
            errors.append({"field": f"{prefix}.unitPrice", "message": "Unit price cannot be negative"})
        items.append(LineItem(description=description, quantity=quantity, unit_price=unit_price))

    if errors:
        raise ValidationFailure.for_fields(errors)
    return items


def parse_tax(raw: Any) -> Decimal:
    if raw is None or raw == "":
        return Decimal("0")
    tax = to_cents(_decimal(raw, "tax"))
    if tax < 0 or tax > HUNDRED:
        raise ValidationFailure.for_fields([{"field": "tax", "message": "tax must be between 0 and 100"}])
    return tax


def compute_totals(items: Iterable[LineItem], tax: Decimal | int | float | None = None) -> InvoiceTotals:
    """Derive amount, tax amount and total from line items.

    Item totals and the tax amount are rounded to cents; amount and total are
    exact sums of those cents.
    """
    tax_rate = to_cents(Decimal(str(tax))) if tax is not None else Decimal("0")
    amount = sum((item.total for item in items), Decimal("0.00"))
    tax_amount = to_cents(amount * tax_rate / HUNDRED)
    return InvoiceTotals(amount=amount, tax=tax_rate, tax_amount=tax_amount, total=amount + tax_amount)


def format_invoice_number(moment: datetime, sequence: int) -> str:
    return f"INV-{moment.year}{moment.month:02d}-{sequence:04d}"


def _next_sequence_value(period: str) -> int:
    """Atomically bump the counter for ``period`` and return the new value.

    The UPDATE takes the row lock, so concurrent requests serialize on it. The
    first invoice of a month inserts the row inside a savepoint and retries the
    UPDATE if another request created it first.
    """
    for _ in range(_SEQUENCE_ATTEMPTS):
        result = db.session.execute(
            update(InvoiceSequence)
            .where(InvoiceSequence.period == period)
            .values(last_value=InvoiceSequence.last_value + 1)
        )
        if result.rowcount:
            return db.session.execute(
                db.select(InvoiceSequence.last_value).where(InvoiceSequence.period == period)
            ).scalar_one()
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(period=period, last_value=1))
            return 1
        except IntegrityError:
            current_app.logger.info("Invoice sequence %s created concurrently, retrying", period)
    raise RuntimeError(f"Could not allocate invoice number for period {period}")


def next_invoice_number(now: datetime | None = None) -> str:
    """Allocate the next ``INV-YYYYMM-####`` number (system-wide per month)."""
    moment = now or utcnow()
    sequence = _next_sequence_value(moment.strftime("%Y%m"))
    return format_invoice_number(moment, sequence)


def create_invoice(
    *,
    user_id: int,
    client_id: Any,
    items: Any,
    due_date: datetime,
    tax: Any = None,
    project_id: Any = None,
    notes: Optional[str] = None,
    now: datetime | None = None,
) -> Invoice:
    """Create an invoice for one of the caller's clients, computing every figure."""
    client = Client.get_owned(client_id, user_id)
    project = Project.get_owned(project_id, user_id) if project_id else None
    line_items = parse_line_items(items)
    totals = compute_totals(line_items, parse_tax(tax))
    moment = now or utcnow()

    invoice = Invoice(
        number=next_invoice_number(moment),
        client=client,
        project=project,
        status=InvoiceStatus.DRAFT,
        issue_date=moment,
        due_date=due_date,
        amount=totals.amount,
        tax=totals.tax,
        total=totals.total,
        notes=notes,
    )
    invoice.items = [
        InvoiceItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=item.total,
        )
        for item in line_items
    ]
    db.session.add(invoice)
    db.session.commit()
    current_app.logger.info("Invoice %s created for client %s (total %s)", invoice.number, client.id, totals.total)
    return invoice


def update_invoice_status(invoice: Invoice, raw_status: Any, now: datetime | None = None) -> Invoice:
    status = parse_enum(InvoiceStatus, raw_status, "status")
    previous = invoice.status
    invoice.transition_to(status, now)
    db.session.commit()
    if previous != status:
        current_app.logger.info("Invoice %s moved %s -> %s", invoice.number, previous.value, status.value)
    return invoice
