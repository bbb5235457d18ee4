from datetime import datetime
from decimal import Decimal

import pytest

from devpulse.errors import InvalidTransition, NotFound, ValidationFailure
from devpulse.models import InvoiceStatus, Project
from devpulse.extensions import db
from devpulse.services.invoice_service import (
    LineItem,
    compute_totals,
    create_invoice,
    format_invoice_number,
    next_invoice_number,
    parse_line_items,
    parse_tax,
    update_invoice_status,
)
from devpulse.utils.invoice_pdf import pdf_filename, render_invoice_pdf

ACME_ITEMS = [
    {"description": "Design", "quantity": 2, "unitPrice": 100},
    {"description": "Dev", "quantity": 5, "unitPrice": 80},
]


class TestTotals:
    def test_acme_scenario(self):
        totals = compute_totals(parse_line_items(ACME_ITEMS), parse_tax(21))
        assert totals.amount == Decimal("600.00")
        assert totals.tax_amount == Decimal("126.00")
        assert totals.total == Decimal("726.00")

    def test_item_totals_round_half_up_to_cents(self):
        item = LineItem(description="Hosting", quantity=Decimal("3"), unit_price=Decimal("0.335"))
        assert item.total == Decimal("1.01")

    def test_tax_amount_rounds_half_up(self):
        items = [LineItem(description="Support", quantity=Decimal("1"), unit_price=Decimal("10"))]
        totals = compute_totals(items, Decimal("8.25"))
        assert totals.tax_amount == Decimal("0.83")
        assert totals.total == Decimal("10.83")

    def test_missing_tax_means_zero(self):
        totals = compute_totals(parse_line_items(ACME_ITEMS), parse_tax(None))
        assert totals.tax_amount == Decimal("0.00")
        assert totals.total == totals.amount

    def test_inputs_are_rounded_to_stored_scale(self):
        (item,) = parse_line_items([{"description": "Pairing", "quantity": "0.125", "unitPrice": "10"}])
        assert item.quantity == Decimal("0.13")
        assert item.total == item.quantity * item.unit_price
        assert parse_tax("21.125") == Decimal("21.13")

    def test_quantity_rounding_to_zero_is_rejected(self):
        with pytest.raises(ValidationFailure) as excinfo:
            parse_line_items([{"description": "Rounding", "quantity": "0.004", "unitPrice": "10"}])
        assert excinfo.value.errors[0]["field"] == "items[0].quantity"

    def test_invalid_items_report_field_errors(self):
        with pytest.raises(ValidationFailure) as excinfo:
            parse_line_items([{"description": "", "quantity": 0, "unitPrice": 5}])
        fields = {error["field"] for error in excinfo.value.errors}
        assert fields == {"items[0].description", "items[0].quantity"}

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationFailure):
            parse_line_items([])

    @pytest.mark.parametrize(
        "items, tax",
        [
            ([("1", "19.99"), ("2.5", "40")], "0"),
            ([("3", "33.33")], "21"),
            ([("0.5", "0.01"), ("7", "12.345")], "100"),
            ([("1", "1000")], "7.5"),
        ],
    )
    def test_totals_invariants(self, items, tax):
        lines = [LineItem(description="x", quantity=Decimal(q), unit_price=Decimal(p)) for q, p in items]
        totals = compute_totals(lines, Decimal(tax))
        assert totals.amount == sum(line.total for line in lines)
        assert totals.total == totals.amount + totals.tax_amount
        assert abs(totals.tax_amount - totals.amount * Decimal(tax) / 100) <= Decimal("0.005")

    @pytest.mark.parametrize("raw", [-1, 101, "abc"])
    def test_tax_out_of_range(self, raw):
        with pytest.raises(ValidationFailure):
            parse_tax(raw)


class TestNumbering:
    def test_format(self):
        assert format_invoice_number(datetime(2026, 3, 5), 7) == "INV-202603-0007"

    def test_sequence_is_per_month(self, ctx):
        march = datetime(2026, 3, 10)
        assert next_invoice_number(march) == "INV-202603-0001"
        assert next_invoice_number(march) == "INV-202603-0002"
        assert next_invoice_number(datetime(2026, 4, 1)) == "INV-202604-0001"
        assert next_invoice_number(march) == "INV-202603-0003"


class TestCreateAndStatus:
    def _invoice(self, user, client, **kwargs):
        return create_invoice(
            user_id=user.id,
            client_id=client.id,
            items=ACME_ITEMS,
            tax=21,
            due_date=datetime(2026, 4, 30),
            now=datetime(2026, 3, 15, 9, 0),
            **kwargs,
        )

    def test_create_invoice_persists_totals_and_items(self, make_user, make_client):
        user = make_user()
        client = make_client(user)
        invoice = self._invoice(user, client, notes="Pago a 30 días")

        assert invoice.number == "INV-202603-0001"
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.amount == Decimal("600.00")
        assert invoice.total == Decimal("726.00")
        assert len(invoice.items) == 2
        assert invoice.paid_date is None

        payload = invoice.to_dict(detail=True)
        assert payload["taxAmount"] == 126.0
        assert payload["items"][0]["unitPrice"] == 100.0

    def test_client_of_another_user_is_not_found(self, make_user, make_client):
        owner = make_user()
        stranger = make_user(email="stranger@example.com")
        client = make_client(owner)
        with pytest.raises(NotFound):
            self._invoice(stranger, client)

    def test_foreign_project_is_not_found(self, make_user, make_client):
        owner = make_user()
        stranger = make_user(email="stranger@example.com")
        project = Project(user_id=stranger.id, name="Hidden")
        db.session.add(project)
        db.session.commit()
        with pytest.raises(NotFound):
            self._invoice(owner, make_client(owner), project_id=project.id)

    def test_paid_sets_and_leaving_paid_clears_paid_date(self, make_user, make_client):
        user = make_user()
        invoice = self._invoice(user, make_client(user))
        paid_at = datetime(2026, 3, 20, 12, 0)

        update_invoice_status(invoice, "sent")
        update_invoice_status(invoice, "PAID", now=paid_at)
        assert invoice.paid_date == paid_at

        update_invoice_status(invoice, "SENT")
        assert invoice.status == InvoiceStatus.SENT
        assert invoice.paid_date is None

    def test_same_status_is_a_no_op(self, make_user, make_client):
        user = make_user()
        invoice = self._invoice(user, make_client(user))
        update_invoice_status(invoice, "PAID", now=datetime(2026, 3, 20))
        update_invoice_status(invoice, "PAID", now=datetime(2026, 5, 1))
        assert invoice.paid_date == datetime(2026, 3, 20)

    def test_illegal_transition_rejected(self, make_user, make_client):
        user = make_user()
        invoice = self._invoice(user, make_client(user))
        update_invoice_status(invoice, "CANCELLED")
        with pytest.raises(InvalidTransition):
            update_invoice_status(invoice, "PAID")
        assert invoice.status == InvoiceStatus.CANCELLED

    def test_unknown_status_rejected(self, make_user, make_client):
        user = make_user()
        invoice = self._invoice(user, make_client(user))
        with pytest.raises(ValidationFailure):
            update_invoice_status(invoice, "ARCHIVED")


def test_pdf_contains_invoice_sections(make_user, make_client):
    user = make_user()
    client = make_client(user, company="Acme SL")
    project = Project(user_id=user.id, name="Portal web", client_id=client.id)
    db.session.add(project)
    db.session.commit()
    invoice = create_invoice(
        user_id=user.id,
        client_id=client.id,
        project_id=project.id,
        items=ACME_ITEMS,
        tax=21,
        due_date=datetime(2026, 4, 30),
        notes="Gracias",
        now=datetime(2026, 3, 15),
    )

    pdf = render_invoice_pdf(invoice, currency_symbol="$", compress=False)

    assert pdf.startswith(b"%PDF")
    for marker in (b"FACTURA", b"CLIENTE:", b"PROYECTO:", b"Subtotal:", b"IVA", b"TOTAL:", b"Notas:"):
        assert marker in pdf
    assert b"$726.00" in pdf
    assert b"Generado con DevPulse" in pdf
    assert pdf_filename(invoice) == "factura-INV-202603-0001.pdf"
