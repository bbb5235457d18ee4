"""Project and task writes, publishing realtime events to project subscribers."""
from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from ..errors import ValidationFailure
from ..extensions import db
from ..models import Client, Project, ProjectStatus, Task, TaskPriority, TaskStatus, parse_enum
from ..utils.parsing import optional_text, parse_date, parse_datetime, parse_float, require_text
from .notifier import (
    PROJECT_UPDATED,
    TASK_CREATED,
    TASK_DELETED,
    TASK_UPDATED,
    ProjectEventPublisher,
)


class ProjectService:
    """Writes for projects and tasks.

    The publisher is injected so request handlers never reach for a global
    socket handle; events go out only after the commit succeeds.
    """

    def __init__(self, publisher: ProjectEventPublisher) -> None:
        self._publisher = publisher

    def _publish(self, project_id: int, event: str, payload: dict) -> None:
        try:
            self._publisher.publish(project_id, event, payload)
        except Exception:
            current_app.logger.warning("Dropped realtime event %s for project %s", event, project_id, exc_info=True)

    @staticmethod
    def _resolve_client(user_id: int, raw_client_id: Any) -> Client | None:
        if raw_client_id in (None, ""):
            return None
        return Client.get_owned(raw_client_id, user_id)

    def _apply_project_fields(self, project: Project, user_id: int, data: Mapping[str, Any]) -> None:
        if "name" in data:
            project.name = require_text(data, "name")
        if "description" in data:
            project.description = optional_text(data, "description")
        if data.get("status"):
            project.status = parse_enum(ProjectStatus, data["status"], "status")
        if "budget" in data:
            project.budget = parse_float(data["budget"], "budget", minimum=0)
        if "startDate" in data:
            project.start_date = parse_date(data["startDate"], "startDate")
        if "endDate" in data:
            project.end_date = parse_date(data["endDate"], "endDate")
        if "clientId" in data:
            client = self._resolve_client(user_id, data["clientId"])
            project.client_id = client.id if client else None

    def create_project(self, user_id: int, data: Mapping[str, Any]) -> Project:
        project = Project(user_id=user_id, name=require_text(data, "name"), status=ProjectStatus.PENDING)
        self._apply_project_fields(project, user_id, data)
        db.session.add(project)
        db.session.commit()
        return project

    def update_project(self, project: Project, data: Mapping[str, Any]) -> Project:
        self._apply_project_fields(project, project.user_id, data)
        db.session.commit()
        self._publish(project.id, PROJECT_UPDATED, project.to_dict())
        return project

    def delete_project(self, project: Project) -> None:
        db.session.delete(project)
        db.session.commit()

    def _apply_task_fields(self, task: Task, data: Mapping[str, Any]) -> None:
        if "title" in data:
            task.title = require_text(data, "title")
        if "description" in data:
            task.description = optional_text(data, "description")
        if data.get("priority"):
            task.priority = parse_enum(TaskPriority, data["priority"], "priority")
        if "hours" in data:
            task.hours = parse_float(data["hours"], "hours", minimum=0) or 0.0
        if "dueDate" in data:
            task.due_date = parse_datetime(data["dueDate"], "dueDate")
        if data.get("status"):
            task.transition_to(parse_enum(TaskStatus, data["status"], "status"))

    def create_task(self, user_id: int, data: Mapping[str, Any]) -> Task:
        if data.get("projectId") in (None, ""):
            raise ValidationFailure.for_fields([{"field": "projectId", "message": "projectId is required"}])
        project = Project.get_owned(data["projectId"], user_id)
        task = Task(project=project, title=require_text(data, "title"), hours=0.0)
        task.transition_to(TaskStatus.TODO)
        self._apply_task_fields(task, data)
        db.session.add(task)
        db.session.commit()
        self._publish(project.id, TASK_CREATED, task.to_dict())
        return task

    def update_task(self, task: Task, data: Mapping[str, Any]) -> Task:
        self._apply_task_fields(task, data)
        db.session.commit()
        self._publish(task.project_id, TASK_UPDATED, task.to_dict())
        return task

    def delete_task(self, task: Task) -> None:
        task_id, project_id = task.id, task.project_id
        db.session.delete(task)
        db.session.commit()
        self._publish(project_id, TASK_DELETED, {"id": task_id})
