"""Task endpoints; every change is broadcast to the project's topic."""
from __future__ import annotations

from flask import Blueprint, current_app, g, request

from ..models import MAX_ROW_ID, Task, TaskPriority, TaskStatus, parse_enum
from ..utils.auth import login_required
from ..utils.parsing import parse_int
from ..utils.responses import created, ok, request_json

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")


def _service():
    return current_app.extensions["project_service"]


@tasks_bp.route("", methods=["GET"])
@login_required
def list_tasks():
    query = Task.owned_by(g.current_user.id)

    project_id = parse_int(request.args.get("projectId"), "projectId", maximum=MAX_ROW_ID)
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    if request.args.get("status"):
        query = query.filter(Task.status == parse_enum(TaskStatus, request.args["status"], "status"))
    if request.args.get("priority"):
        query = query.filter(Task.priority == parse_enum(TaskPriority, request.args["priority"], "priority"))

    tasks = query.order_by(Task.priority_rank().desc(), Task.created_at.desc(), Task.id.desc()).all()
    return ok([task.to_dict() for task in tasks])


@tasks_bp.route("/<int:task_id>", methods=["GET"])
@login_required
def get_task(task_id: int):
    return ok(Task.get_owned(task_id, g.current_user.id).to_dict())


@tasks_bp.route("", methods=["POST"])
@login_required
def create_task():
    task = _service().create_task(g.current_user.id, request_json())
    return created(task.to_dict(), "Task created successfully")


@tasks_bp.route("/<int:task_id>", methods=["PUT"])
@login_required
def update_task(task_id: int):
    task = Task.get_owned(task_id, g.current_user.id)
    task = _service().update_task(task, request_json())
    return ok(task.to_dict(), "Task updated successfully")


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id: int):
    task = Task.get_owned(task_id, g.current_user.id)
    _service().delete_task(task)
    return ok(message="Task deleted successfully")
