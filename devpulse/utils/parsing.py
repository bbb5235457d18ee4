"""Request payload coercion helpers raising field-level validation errors."""
from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Mapping

from ..errors import ValidationFailure


def _fail(field: str, message: str) -> ValidationFailure:
    return ValidationFailure.for_fields([{"field": field, "message": message}])


def require_text(data: Mapping[str, Any], field: str, *, max_length: int = 255) -> str:
    value = str(data.get(field) or "").strip()
    if not value:
        raise _fail(field, f"{field} is required")
    if len(value) > max_length:
        raise _fail(field, f"{field} is too long")
    return value


def optional_text(data: Mapping[str, Any], field: str) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    return str(value).strip() or None


def parse_datetime(raw: Any, field: str) -> datetime | None:
    """Accept ISO dates (``2026-10-18``) or timestamps, with or without ``Z``."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise _fail(field, f"{field} must be an ISO-8601 date") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(raw: Any, field: str) -> date | None:
    parsed = parse_datetime(raw, field)
    return parsed.date() if parsed is not None else None


def parse_float(raw: Any, field: str, *, minimum: float | None = None) -> float | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise _fail(field, f"{field} must be a number")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise _fail(field, f"{field} must be a number") from None
    if not math.isfinite(value):
        raise _fail(field, f"{field} must be a number")
    if minimum is not None and value < minimum:
        raise _fail(field, f"{field} must be at least {minimum:g}")
    return value


def parse_int(
    raw: Any,
    field: str,
    *,
    default: int | None = None,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise _fail(field, f"{field} must be an integer") from None
    if minimum is not None and value < minimum:
        raise _fail(field, f"{field} must be at least {minimum}")
    if maximum is not None and value > maximum:
        raise _fail(field, f"{field} must be at most {maximum}")
    return value
