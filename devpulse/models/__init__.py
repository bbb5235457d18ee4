"""Database models package with per-user ownership."""
from .base import MAX_ROW_ID, utcnow
from .client import Client
from .finance import INVOICE_TRANSITIONS, Invoice, InvoiceItem, InvoiceSequence, InvoiceStatus
from .github import CONTRIBUTIONS_FROM_GITHUB, CONTRIBUTIONS_UNAVAILABLE, GitHubStats
from .project import Project, ProjectStatus, Task, TaskPriority, TaskStatus, parse_enum
from .user import User

__all__ = [
    "User",
    "Client",
    "Project",
    "ProjectStatus",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "Invoice",
    "InvoiceItem",
    "InvoiceSequence",
    "InvoiceStatus",
    "INVOICE_TRANSITIONS",
    "GitHubStats",
    "CONTRIBUTIONS_FROM_GITHUB",
    "CONTRIBUTIONS_UNAVAILABLE",
    "parse_enum",
    "MAX_ROW_ID",
    "utcnow",
]
