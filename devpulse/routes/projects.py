"""Project endpoints; writes go through the project service."""
from __future__ import annotations

from flask import Blueprint, current_app, g, request
from sqlalchemy import or_

from ..models import MAX_ROW_ID, Project, ProjectStatus, parse_enum
from ..utils.auth import login_required
from ..utils.parsing import parse_int
from ..utils.responses import created, ok, paginate, request_json

projects_bp = Blueprint("projects", __name__, url_prefix="/api/projects")


def _service():
    return current_app.extensions["project_service"]


@projects_bp.route("", methods=["GET"])
@login_required
def list_projects():
    query = Project.owned_by(g.current_user.id)

    if request.args.get("status"):
        query = query.filter(Project.status == parse_enum(ProjectStatus, request.args["status"], "status"))
    client_id = parse_int(request.args.get("clientId"), "clientId", maximum=MAX_ROW_ID)
    if client_id is not None:
        query = query.filter(Project.client_id == client_id)
    search = (request.args.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Project.name.ilike(pattern), Project.description.ilike(pattern)))

    query = query.order_by(Project.created_at.desc(), Project.id.desc())
    return ok(paginate(query, "projects", lambda project: project.to_dict()))


@projects_bp.route("/<int:project_id>", methods=["GET"])
@login_required
def get_project(project_id: int):
    project = Project.get_owned(project_id, g.current_user.id)
    payload = project.to_dict()
    payload["tasks"] = [task.to_dict() for task in project.tasks]
    payload["invoices"] = [invoice.to_dict() for invoice in project.invoices]
    payload["taskStats"] = project.task_stats()
    return ok(payload)


@projects_bp.route("", methods=["POST"])
@login_required
def create_project():
    project = _service().create_project(g.current_user.id, request_json())
    return created(project.to_dict(), "Project created successfully")


@projects_bp.route("/<int:project_id>", methods=["PUT"])
@login_required
def update_project(project_id: int):
    project = Project.get_owned(project_id, g.current_user.id)
    project = _service().update_project(project, request_json())
    return ok(project.to_dict(), "Project updated successfully")


@projects_bp.route("/<int:project_id>", methods=["DELETE"])
@login_required
def delete_project(project_id: int):
    project = Project.get_owned(project_id, g.current_user.id)
    _service().delete_project(project)
    return ok(message="Project deleted successfully")
