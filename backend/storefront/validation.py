from __future__ import annotations

from datetime import datetime
from typing import Any

from .errors import ValidationError
from storefront.time_utils import parse_iso_datetime


MAX_PAGE_SIZE = 100


def coerce_int(value: Any, name: str, *, minimum: int | None = None) -> int:
    """
    Strict integer coercion for JSON bodies and query strings.

    Rejects bools, floats, decimals and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{name} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return result


def optional_int(args, name: str, *, minimum: int | None = None) -> int | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    return coerce_int(raw, name, minimum=minimum)


def parse_pagination(args, *, default_limit: int = 50) -> tuple[int, int]:
    page = optional_int(args, "page", minimum=1) or 1
    limit = optional_int(args, "limit", minimum=1) or default_limit
    return page, min(limit, MAX_PAGE_SIZE)


def parse_datetime_arg(args, name: str) -> datetime | None:
    raw = args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


def parse_date_range(args) -> tuple[datetime | None, datetime | None]:
    start = parse_datetime_arg(args, "start_date")
    end = parse_datetime_arg(args, "end_date")
    if start and end and start > end:
        raise ValidationError("start_date must be before end_date")
    return start, end


def parse_bool_arg(args, name: str) -> bool | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    lowered = str(raw).strip().lower()
    if lowered in ("1", "true", "yes"):
        return True
    if lowered in ("0", "false", "no"):
        return False
    raise ValidationError(f"{name} must be true or false")


def optional_text(payload: dict, name: str, *, max_length: int) -> str | None:
    raw = payload.get(name)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{name} must be a string")
    value = raw.strip()
    if len(value) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return value or None


def require_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
