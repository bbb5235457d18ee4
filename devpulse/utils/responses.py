"""Uniform ``{success, data | message}`` response envelopes."""
from __future__ import annotations

import math
from typing import Any, Dict

from flask import jsonify, request

from ..errors import ValidationFailure
from ..models import MAX_ROW_ID
from .parsing import parse_int

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def ok(data: Any = None, message: str | None = None, status: int = 200):
    payload: Dict[str, Any] = {"success": True}
    if message:
        payload["message"] = message
    if data is not None or message is None:
        payload["data"] = data
    return jsonify(payload), status


def created(data: Any, message: str):
    return ok(data, message, 201)


def page_args() -> tuple[int, int]:
    page = parse_int(
        request.args.get("page"), "page", default=1, minimum=1, maximum=MAX_ROW_ID // MAX_PAGE_SIZE
    )
    limit = parse_int(request.args.get("limit"), "limit", default=DEFAULT_PAGE_SIZE, minimum=1)
    return page, min(limit, MAX_PAGE_SIZE)


def paginate(query, key: str, serialize) -> Dict[str, Any]:
    """Run ``query`` for the requested page and wrap rows with pagination info."""
    page, limit = page_args()
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return {
        key: [serialize(row) for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


def request_json() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailure("Request body must be a JSON object")
    return data
