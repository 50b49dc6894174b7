# Overview: Request parsing helpers shared by routes; malformed input becomes ValidationError.

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from flask import request

from .errors import ValidationError
from .time_utils import parse_iso_date, parse_iso_datetime

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off", ""}


def json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_bool(value: Any, field: str, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValidationError(f"{field} must be true or false")


def parse_date_field(value: Any, field: str) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD")


def parse_datetime_field(value: Any, field: str) -> datetime | None:
    if value is None:
        return None
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def query_bool(name: str, default: bool = False) -> bool:
    return parse_bool(request.args.get(name), name, default)


def query_date(name: str) -> date | None:
    return parse_date_field(request.args.get(name), name)


def query_int(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def query_date_range() -> tuple[date | None, date | None]:
    date_from = query_date("date_from")
    date_to = query_date("date_to")
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must be on or before date_to")
    return date_from, date_to
