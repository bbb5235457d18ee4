from __future__ import annotations

from datetime import datetime

from flask import Blueprint, g, request

from ..models import utcnow
from ..services.dashboard_service import dashboard_metrics, monthly_revenue, recent_activity
from ..utils.auth import login_required
from ..utils.parsing import parse_int
from ..utils.responses import ok

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.route("/metrics", methods=["GET"])
@login_required
def metrics():
    return ok(dashboard_metrics(g.current_user.id))


@dashboard_bp.route("/activity", methods=["GET"])
@login_required
def activity():
    return ok(recent_activity(g.current_user.id))


@dashboard_bp.route("/revenue", methods=["GET"])
@login_required
def revenue():
    year = parse_int(
        request.args.get("year"), "year", default=utcnow().year, minimum=1, maximum=datetime.max.year - 1
    )
    return ok(monthly_revenue(g.current_user.id, year))
