"""Registration, login and token introspection."""
from __future__ import annotations

import re

from flask import Blueprint, current_app, g
from sqlalchemy.exc import IntegrityError

from ..errors import Unauthorized, ValidationFailure
from ..extensions import db
from ..models import User
from ..utils.auth import issue_token, login_required, normalize_email
from ..utils.responses import created, ok, request_json

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def _session_payload(user: User) -> dict:
    return {"user": user.to_dict(), "token": issue_token(user)}


@auth_bp.route("/register", methods=["POST"])
def register():
    data = request_json()
    email = normalize_email(str(data.get("email") or ""))
    password = str(data.get("password") or "")
    name = str(data.get("name") or "").strip()

    errors = []
    if not _EMAIL_RE.match(email):
        errors.append({"field": "email", "message": "Invalid email"})
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append({"field": "password", "message": "Password must be at least 6 characters"})
    if not name:
        errors.append({"field": "name", "message": "Name is required"})
    if errors:
        raise ValidationFailure.for_fields(errors)

    if User.query.filter_by(email=email).first():
        raise ValidationFailure.for_fields([{"field": "email", "message": "Email is already registered"}])

    user = User(email=email, name=name)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailure.for_fields([{"field": "email", "message": "Email is already registered"}]) from None

    current_app.logger.info("User %s registered", user.id)
    return created(_session_payload(user), "User registered successfully")


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request_json()
    email = normalize_email(str(data.get("email") or ""))
    password = str(data.get("password") or "")
    if not email or not password:
        raise ValidationFailure("Email and password are required")

    user = User.query.filter_by(email=email).first()
    if user is None or not user.check_password(password):
        raise Unauthorized("Invalid credentials")

    return ok(_session_payload(user), "Login successful")


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return ok(g.current_user.to_dict())
