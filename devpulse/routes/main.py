from __future__ import annotations

from flask import Blueprint, current_app

from ..models import utcnow
from ..utils.responses import ok

main_bp = Blueprint("main", __name__, url_prefix="/api")


@main_bp.route("/health")
def health_check():
    return ok(
        {
            "status": "ok",
            "app": current_app.config.get("APP_NAME", "DevPulse"),
            "timestamp": utcnow().isoformat(),
        },
        "API is running",
    )
