"""Client CRUD scoped to the authenticated user."""
from __future__ import annotations

from flask import Blueprint, g, request
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Client, Invoice, Project
from ..utils.auth import login_required
from ..utils.parsing import optional_text, require_text
from ..utils.responses import created, ok, paginate, request_json

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")

RELATED_LIMIT = 5


def _count_map(column, user_id: int) -> dict:
    rows = (
        db.session.query(column, func.count())
        .join(Client, Client.id == column)
        .filter(Client.user_id == user_id)
        .group_by(column)
        .all()
    )
    return {client_id: count for client_id, count in rows}


def _apply_fields(client: Client, data: dict) -> None:
    if "name" in data:
        client.name = require_text(data, "name")
    if "email" in data:
        client.email = require_text(data, "email").lower()
    for field in ("phone", "company", "address", "notes"):
        if field in data:
            setattr(client, field, optional_text(data, field))


@clients_bp.route("", methods=["GET"])
@login_required
def list_clients():
    user_id = g.current_user.id
    query = Client.owned_by(user_id)
    search = (request.args.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(Client.name.ilike(pattern), Client.email.ilike(pattern), Client.company.ilike(pattern))
        )
    query = query.order_by(Client.created_at.desc(), Client.id.desc())

    project_counts = _count_map(Project.client_id, user_id)
    invoice_counts = _count_map(Invoice.client_id, user_id)

    def serialize(client: Client) -> dict:
        payload = client.to_dict()
        payload["projectCount"] = project_counts.get(client.id, 0)
        payload["invoiceCount"] = invoice_counts.get(client.id, 0)
        return payload

    return ok(paginate(query, "clients", serialize))


@clients_bp.route("/<int:client_id>", methods=["GET"])
@login_required
def get_client(client_id: int):
    client = Client.get_owned(client_id, g.current_user.id)
    payload = client.to_dict()
    payload["projects"] = [project.to_dict() for project in client.projects[:RELATED_LIMIT]]
    payload["invoices"] = [invoice.to_dict() for invoice in client.invoices[:RELATED_LIMIT]]
    return ok(payload)


@clients_bp.route("", methods=["POST"])
@login_required
def create_client():
    data = request_json()
    client = Client(
        user_id=g.current_user.id,
        name=require_text(data, "name"),
        email=require_text(data, "email").lower(),
    )
    _apply_fields(client, data)
    db.session.add(client)
    db.session.commit()
    return created(client.to_dict(), "Client created successfully")


@clients_bp.route("/<int:client_id>", methods=["PUT"])
@login_required
def update_client(client_id: int):
    client = Client.get_owned(client_id, g.current_user.id)
    _apply_fields(client, request_json())
    db.session.commit()
    return ok(client.to_dict(), "Client updated successfully")


@clients_bp.route("/<int:client_id>", methods=["DELETE"])
@login_required
def delete_client(client_id: int):
    client = Client.get_owned(client_id, g.current_user.id)
    db.session.delete(client)
    db.session.commit()
    return ok(message="Client deleted successfully")
