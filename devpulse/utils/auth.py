"""Bearer-token authentication helpers for the JSON API."""
from __future__ import annotations

import functools
from typing import Callable

from flask import current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..errors import Unauthorized
from ..extensions import db
from ..models import User


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        current_app.config["SECRET_KEY"],
        salt=current_app.config.get("AUTH_TOKEN_SALT", "devpulse-auth"),
    )


def issue_token(user: User) -> str:
    """Sign a token identifying ``user``; expiry is checked on load."""
    return _serializer().dumps({"id": user.id, "email": user.email})


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise Unauthorized("Authorization token not provided")
    token = header.split(" ", 1)[1].strip()
    if not token:
        raise Unauthorized("Invalid token")
    return token


def _load_user_from_token() -> User:
    token = _bearer_token()
    max_age = current_app.config.get("AUTH_TOKEN_MAX_AGE")
    try:
        claims = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        raise Unauthorized("Token expired") from None
    except BadSignature:
        raise Unauthorized("Invalid token") from None

    user = db.session.get(User, claims.get("id")) if isinstance(claims, dict) else None
    if user is None:
        raise Unauthorized("User not found")
    return user


def login_required(view: Callable):
    """Decorator to guard routes that require a valid bearer token."""

    @functools.wraps(view)
    def wrapped_view(*args, **kwargs):
        g.current_user = _load_user_from_token()  # type: ignore[attr-defined]
        return view(*args, **kwargs)

    return wrapped_view


def normalize_email(value: str) -> str:
    """Normalize an email for consistent lookups."""
    return value.strip().lower()
