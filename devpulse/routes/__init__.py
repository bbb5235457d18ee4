"""HTTP blueprints for the JSON API."""
from .auth import auth_bp
from .clients import clients_bp
from .dashboard import dashboard_bp
from .github import github_bp
from .invoices import invoices_bp
from .main import main_bp
from .projects import projects_bp
from .tasks import tasks_bp
from .users import users_bp

BLUEPRINTS = (
    main_bp,
    auth_bp,
    users_bp,
    clients_bp,
    projects_bp,
    tasks_bp,
    invoices_bp,
    dashboard_bp,
    github_bp,
)
