"""Dashboard aggregation: overview counts, revenue and chart series.

Every task and invoice query joins through its owner (``Task -> Project ->
User`` and ``Invoice -> Client -> User``) via the models' ``owned_by``.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import extract, func

from ..extensions import db
from ..models import (
    Client,
    Invoice,
    InvoiceStatus,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
)
from ..models.base import iso, money

RECENT_PROJECTS_LIMIT = 5
UPCOMING_TASKS_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 10
MONTH_NAMES = ("ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sept", "oct", "nov", "dic")

_PENDING_TASK_STATUSES = (TaskStatus.TODO, TaskStatus.IN_PROGRESS)
_PENDING_INVOICE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.SENT)
_UNCOLLECTED_EXCLUDED = (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)


def _sum_totals(query) -> float:
    value = query.with_entities(func.coalesce(func.sum(Invoice.total), 0)).scalar()
    return money(Decimal(str(value or 0)))


def _overview(user_id: int) -> Dict[str, Any]:
    projects_q = Project.owned_by(user_id)
    tasks_q = Task.owned_by(user_id)
    invoices_q = Invoice.owned_by(user_id)

    return {
        "totalClients": Client.owned_by(user_id).count(),
        "totalProjects": projects_q.count(),
        "activeProjects": projects_q.filter(Project.status == ProjectStatus.IN_PROGRESS).count(),
        "completedProjects": projects_q.filter(Project.status == ProjectStatus.COMPLETED).count(),
        "totalTasks": tasks_q.count(),
        "completedTasks": tasks_q.filter(Task.status == TaskStatus.COMPLETED).count(),
        "pendingTasks": tasks_q.filter(Task.status.in_(_PENDING_TASK_STATUSES)).count(),
        "totalInvoices": invoices_q.count(),
        "paidInvoices": invoices_q.filter(Invoice.status == InvoiceStatus.PAID).count(),
        "pendingInvoices": invoices_q.filter(Invoice.status.in_(_PENDING_INVOICE_STATUSES)).count(),
        "totalRevenue": _sum_totals(invoices_q.filter(Invoice.status == InvoiceStatus.PAID)),
        "pendingRevenue": _sum_totals(invoices_q.filter(Invoice.status.notin_(_UNCOLLECTED_EXCLUDED))),
    }


def _recent_projects(user_id: int) -> List[Dict[str, Any]]:
    task_counts = (
        db.session.query(Task.project_id, func.count(Task.id).label("task_count"))
        .group_by(Task.project_id)
        .subquery()
    )
    rows = (
        db.session.query(Project, Client.name, func.coalesce(task_counts.c.task_count, 0))
        .outerjoin(Client, Project.client_id == Client.id)
        .outerjoin(task_counts, task_counts.c.project_id == Project.id)
        .filter(Project.user_id == user_id)
        .order_by(Project.updated_at.desc(), Project.id.desc())
        .limit(RECENT_PROJECTS_LIMIT)
        .all()
    )
    recent = []
    for project, client_name, task_count in rows:
        payload = project.to_dict()
        payload["client"] = {"name": client_name} if client_name is not None else None
        payload["taskCount"] = int(task_count)
        recent.append(payload)
    return recent


def _upcoming_tasks(user_id: int) -> List[Dict[str, Any]]:
    tasks = (
        Task.owned_by(user_id)
        .filter(Task.status != TaskStatus.COMPLETED, Task.due_date.isnot(None))
        .order_by(Task.due_date.asc(), Task.id.asc())
        .limit(UPCOMING_TASKS_LIMIT)
        .all()
    )
    return [task.to_dict() for task in tasks]


def _projects_by_status(user_id: int) -> List[Dict[str, Any]]:
    rows = (
        db.session.query(Project.status, func.count(Project.id))
        .filter(Project.user_id == user_id)
        .group_by(Project.status)
        .all()
    )
    return [{"status": status.value, "count": count} for status, count in rows]


def _hours_per_project(user_id: int) -> List[Dict[str, Any]]:
    rows = (
        db.session.query(Task.project_id, Project.name, func.coalesce(func.sum(Task.hours), 0))
        .join(Project, Task.project_id == Project.id)
        .filter(Project.user_id == user_id)
        .group_by(Task.project_id, Project.name)
        .order_by(Task.project_id)
        .all()
    )
    return [
        {"projectId": project_id, "projectName": name, "hours": float(hours or 0)}
        for project_id, name, hours in rows
    ]


def dashboard_metrics(user_id: int) -> Dict[str, Any]:
    """Build the dashboard payload; an empty account yields zeros and empty lists."""
    return {
        "overview": _overview(user_id),
        "recentProjects": _recent_projects(user_id),
        "upcomingTasks": _upcoming_tasks(user_id),
        "charts": {
            "projectsByStatus": _projects_by_status(user_id),
            "hoursPerProject": _hours_per_project(user_id),
        },
    }


def recent_activity(user_id: int) -> List[Dict[str, Any]]:
    tasks = (
        Task.owned_by(user_id)
        .order_by(Task.updated_at.desc(), Task.id.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
        .all()
    )
    return [
        {
            "id": task.id,
            "type": "task",
            "action": "completed" if task.status == TaskStatus.COMPLETED else "updated",
            "title": task.title,
            "projectName": task.project.name,
            "timestamp": iso(task.updated_at),
        }
        for task in tasks
    ]


def monthly_revenue(user_id: int, year: int) -> List[Dict[str, Any]]:
    """Bucket PAID invoice totals by month of ``paid_date`` into a 12-entry series."""
    month = extract("month", Invoice.paid_date)
    rows = (
        Invoice.owned_by(user_id)
        .filter(
            Invoice.status == InvoiceStatus.PAID,
            Invoice.paid_date.isnot(None),
            Invoice.paid_date >= datetime(year, 1, 1),
            Invoice.paid_date < datetime(year + 1, 1, 1),
        )
        .with_entities(month.label("month"), func.sum(Invoice.total))
        .group_by(month)
        .all()
    )
    by_month = {int(month_value): money(Decimal(str(total or 0))) for month_value, total in rows}
    return [
        {"month": index, "monthName": MONTH_NAMES[index - 1], "revenue": by_month.get(index, 0.0)}
        for index in range(1, 13)
    ]
