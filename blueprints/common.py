"""Request helpers shared by the JSON blueprints."""

from datetime import date, datetime

from flask import current_app, request

from errors import NotFoundError, ValidationError
from models import db


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data: dict, *fields: str) -> None:
    missing = [f"{field} is required" for field in fields if data.get(field) in (None, '')]
    if missing:
        raise ValidationError(errors=missing)


def text_field(data: dict, field: str, strip: bool = True) -> str | None:
    """A string field from a JSON body; None when absent or null."""
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() if strip else value


def get_or_404(model, object_id, label: str | None = None):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} {object_id} not found")
    return obj


def parse_int(value, field: str, minimum: int | None = None, maximum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer") from None
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be at most {maximum}")
    return number


def parse_optional_int(value, field: str, **bounds) -> int | None:
    if value in (None, ''):
        return None
    return parse_int(value, field, **bounds)


def parse_date(value, field: str) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a date formatted YYYY-MM-DD") from None


def parse_datetime(value, field: str) -> datetime:
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO 8601 datetime") from None


def parse_choice(value, field: str, choices) -> str:
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value


def chat_hub():
    return current_app.extensions['chat_hub']
