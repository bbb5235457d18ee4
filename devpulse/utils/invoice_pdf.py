# devpulse/utils/invoice_pdf.py

from __future__ import annotations

import io
from datetime import date, datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle


def _fmt_date(d):
    if not d:
        return "-"
    if isinstance(d, (datetime, date)):
        return d.strftime("%d/%m/%Y")
    return str(d)


def _money(v, symbol="$"):
    return f"{symbol}{float(v or 0):,.2f}"


def _qty(v):
    value = float(v or 0)
    return f"{value:g}"


def pdf_filename(invoice) -> str:
    return f"factura-{invoice.number}.pdf"


def render_invoice_pdf(invoice, *, currency_symbol: str = "$", compress: bool = True) -> bytes:
    """
    Render an Invoice PDF (NO DB writes).

    Section headers (FACTURA, CLIENTE, PROYECTO) and field order match the
    invoices already printed by the product. Returns PDF bytes.
    """
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4, pageCompression=1 if compress else 0)
    c.setTitle(f"Factura {invoice.number}")
    width, height = A4
    left = 18 * mm
    right = width - 18 * mm

    DARK = colors.HexColor("#111827")
    GRAY = colors.HexColor("#6b7280")
    RULE = colors.HexColor("#e5e7eb")
    PAID = colors.HexColor("#15803d")
    UNPAID = colors.HexColor("#b91c1c")

    # --- Header ---
    c.setFillColor(DARK)
    c.setFont("Helvetica-Bold", 24)
    c.drawString(left, height - 25 * mm, "FACTURA")

    c.setFont("Helvetica", 11)
    c.drawRightString(right, height - 18 * mm, f"Nº: {invoice.number}")
    c.drawRightString(right, height - 23 * mm, f"Fecha: {_fmt_date(invoice.issue_date)}")
    c.drawRightString(right, height - 28 * mm, f"Vencimiento: {_fmt_date(invoice.due_date)}")

    status = invoice.status.value
    c.setFont("Helvetica-Bold", 10)
    c.setFillColor(PAID if status == "PAID" else UNPAID)
    c.drawRightString(right, height - 34 * mm, status)
    c.setFillColor(DARK)

    c.setStrokeColor(RULE)
    c.line(left, height - 40 * mm, right, height - 40 * mm)

    # --- Client / project blocks ---
    y = height - 50 * mm
    client = invoice.client
    c.setFont("Helvetica-Bold", 12)
    c.drawString(left, y, "CLIENTE:")
    c.setFont("Helvetica", 10)
    line_y = y - 6 * mm
    for value in (client.name, client.email, client.company, client.address):
        c.drawString(left, line_y, (value or "")[:70])
        line_y -= 5 * mm

    project = invoice.project
    if project is not None:
        c.setFont("Helvetica-Bold", 12)
        c.drawString(width / 2, y, "PROYECTO:")
        c.setFont("Helvetica", 10)
        c.drawString(width / 2, y - 6 * mm, project.name[:60])

    y -= 35 * mm

    # --- Items table ---
    data = [["Descripción", "Cantidad", "Precio", "Total"]]
    for item in invoice.items:
        data.append([
            item.description,
            _qty(item.quantity),
            _money(item.unit_price, currency_symbol),
            _money(item.total, currency_symbol),
        ])

    table = Table(data, colWidths=[90 * mm, 22 * mm, 30 * mm, 32 * mm], hAlign="LEFT")
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("LINEBELOW", (0, 0), (-1, 0), 0.75, DARK),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("PADDING", (0, 0), (-1, -1), 4),
    ]))
    _, th = table.wrapOn(c, right - left, height)
    table.drawOn(c, left, y - th)
    y = y - th - 8 * mm

    # --- Totals ---
    c.setStrokeColor(RULE)
    c.line(width / 2 + 20 * mm, y + 3 * mm, right, y + 3 * mm)
    label_x = right - 40 * mm

    c.setFont("Helvetica", 10)
    c.drawRightString(label_x, y - 3 * mm, "Subtotal:")
    c.drawRightString(right, y - 3 * mm, _money(invoice.amount, currency_symbol))
    y -= 7 * mm

    if float(invoice.tax or 0) > 0:
        c.drawRightString(label_x, y - 3 * mm, f"IVA ({float(invoice.tax):g}%):")
        c.drawRightString(right, y - 3 * mm, _money(invoice.tax_amount, currency_symbol))
        y -= 7 * mm

    c.setFont("Helvetica-Bold", 11)
    c.drawRightString(label_x, y - 3 * mm, "TOTAL:")
    c.drawRightString(right, y - 3 * mm, _money(invoice.total, currency_symbol))

    # --- Notes ---
    if invoice.notes:
        y -= 18 * mm
        c.setFont("Helvetica-Bold", 10)
        c.drawString(left, y, "Notas:")
        c.setFont("Helvetica", 10)
        c.setFillColor(GRAY)
        for line in simpleSplit(invoice.notes, "Helvetica", 10, right - left):
            y -= 5 * mm
            c.drawString(left, y, line)
        c.setFillColor(DARK)

    # --- Footer ---
    c.setFont("Helvetica", 8)
    c.setFillColor(GRAY)
    c.drawCentredString(width / 2, 10 * mm, "Generado con DevPulse")

    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf
