"""Invoice endpoints: listing, creation, status changes and PDF export."""
from __future__ import annotations

from flask import Blueprint, Response, current_app, g, request

from ..errors import ValidationFailure
from ..extensions import db
from ..models import MAX_ROW_ID, Invoice, InvoiceStatus, parse_enum
from ..services.invoice_service import create_invoice, update_invoice_status
from ..utils.auth import login_required
from ..utils.invoice_pdf import pdf_filename, render_invoice_pdf
from ..utils.parsing import optional_text, parse_datetime, parse_int
from ..utils.responses import created, ok, paginate, request_json

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.route("", methods=["GET"])
@login_required
def list_invoices():
    query = Invoice.owned_by(g.current_user.id)
    if request.args.get("status"):
        query = query.filter(Invoice.status == parse_enum(InvoiceStatus, request.args["status"], "status"))
    client_id = parse_int(request.args.get("clientId"), "clientId", maximum=MAX_ROW_ID)
    if client_id is not None:
        query = query.filter(Invoice.client_id == client_id)
    query = query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
    return ok(paginate(query, "invoices", lambda invoice: invoice.to_dict()))


@invoices_bp.route("/<int:invoice_id>", methods=["GET"])
@login_required
def get_invoice(invoice_id: int):
    invoice = Invoice.get_owned(invoice_id, g.current_user.id)
    return ok(invoice.to_dict(detail=True))


@invoices_bp.route("", methods=["POST"])
@login_required
def create():
    data = request_json()
    errors = []
    if data.get("clientId") in (None, ""):
        errors.append({"field": "clientId", "message": "clientId is required"})
    if not data.get("items"):
        errors.append({"field": "items", "message": "At least one item is required"})
    if not data.get("dueDate"):
        errors.append({"field": "dueDate", "message": "dueDate is required"})
    if errors:
        raise ValidationFailure.for_fields(errors)

    invoice = create_invoice(
        user_id=g.current_user.id,
        client_id=data["clientId"],
        project_id=data.get("projectId"),
        items=data["items"],
        tax=data.get("tax"),
        due_date=parse_datetime(data["dueDate"], "dueDate"),
        notes=optional_text(data, "notes"),
    )
    return created(invoice.to_dict(detail=True), "Invoice created successfully")


@invoices_bp.route("/<int:invoice_id>/status", methods=["PATCH"])
@login_required
def change_status(invoice_id: int):
    invoice = Invoice.get_owned(invoice_id, g.current_user.id)
    data = request_json()
    if not data.get("status"):
        raise ValidationFailure.for_fields([{"field": "status", "message": "status is required"}])
    invoice = update_invoice_status(invoice, data["status"])
    return ok(invoice.to_dict(), "Invoice status updated")


@invoices_bp.route("/<int:invoice_id>/pdf", methods=["GET"])
@login_required
def download_pdf(invoice_id: int):
    invoice = Invoice.get_owned(invoice_id, g.current_user.id)
    pdf_bytes = render_invoice_pdf(
        invoice, currency_symbol=current_app.config.get("INVOICE_CURRENCY_SYMBOL", "$")
    )
    return Response(
        pdf_bytes,
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={pdf_filename(invoice)}"},
    )


@invoices_bp.route("/<int:invoice_id>", methods=["DELETE"])
@login_required
def delete_invoice(invoice_id: int):
    invoice = Invoice.get_owned(invoice_id, g.current_user.id)
    db.session.delete(invoice)
    db.session.commit()
    return ok(message="Invoice deleted successfully")
