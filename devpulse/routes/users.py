"""Profile management and account deletion."""
from __future__ import annotations

from flask import Blueprint, current_app, g

from ..errors import ValidationFailure
from ..extensions import db
from ..models import Client, Project
from ..utils.auth import login_required
from ..utils.parsing import optional_text, require_text
from ..utils.responses import ok, request_json
from .auth import MIN_PASSWORD_LENGTH

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.route("/profile", methods=["GET"])
@login_required
def get_profile():
    user = g.current_user
    payload = user.to_dict()
    payload["counts"] = {
        "clients": Client.owned_by(user.id).count(),
        "projects": Project.owned_by(user.id).count(),
    }
    return ok(payload)


@users_bp.route("/profile", methods=["PUT"])
@login_required
def update_profile():
    user = g.current_user
    data = request_json()
    if "name" in data:
        user.name = require_text(data, "name")
    if "avatar" in data:
        user.avatar = optional_text(data, "avatar")
    db.session.commit()
    return ok(user.to_dict(), "Profile updated")


@users_bp.route("/password", methods=["PUT"])
@login_required
def change_password():
    user = g.current_user
    data = request_json()
    current_password = str(data.get("currentPassword") or "")
    new_password = str(data.get("newPassword") or "")

    if not user.check_password(current_password):
        raise ValidationFailure("Current password is incorrect")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailure.for_fields(
            [{"field": "newPassword", "message": "Password must be at least 6 characters"}]
        )

    user.set_password(new_password)
    db.session.commit()
    return ok(message="Password updated successfully")


@users_bp.route("/account", methods=["DELETE"])
@login_required
def delete_account():
    user = g.current_user
    data = request_json()
    if not user.check_password(str(data.get("password") or "")):
        raise ValidationFailure("Incorrect password")

    user_id = user.id
    db.session.delete(user)
    db.session.commit()
    current_app.logger.info("User %s deleted their account", user_id)
    return ok(message="Account deleted successfully")
