# Overview: Payload validation for directory records (clients, measurement cards).

"""
Request payload validation.

A ModelValidationPolicy names which columns a client may write and which
must be present on create. validate_payload() checks a JSON body against
the policy and the model's column metadata (type, nullability, length)
and returns a cleaned patch ready to apply to the row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import Boolean, Date, Integer, String, Text

from .errors import ValidationError
from atelier.time_utils import parse_iso_date


MEASUREMENT_UNITS = ("inches", "cm")


@dataclass(frozen=True)
class ModelValidationPolicy:
    writable_fields: frozenset[str] | set[str]
    required_on_create: frozenset[str] | set[str] = field(default_factory=frozenset)


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_int(name: str, value):
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    text = str(value).strip() if isinstance(value, str) else ""
    if not text.lstrip("-").isdigit():
        raise ValidationError(f"{name} must be an integer")
    return int(text)


def _as_date(name: str, value):
    if isinstance(value, date):
        return value
    try:
        parsed = parse_iso_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{name} must be an ISO-8601 date")
    return parsed


def _as_text(name: str, value):
    # Card values arrive as numbers from some forms ("chest": 38)
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{name} must be text")
    return str(value).strip()


def _coerce(column, value):
    if isinstance(column.type, Integer):
        return _as_int(column.key, value)
    if isinstance(column.type, Boolean):
        return bool(value)
    if isinstance(column.type, Date):
        return _as_date(column.key, value)
    if isinstance(column.type, (String, Text)):
        return _as_text(column.key, value)
    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    partial=False: create (required_on_create enforced)
    partial=True:  patch (only the keys present are checked)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(name for name in policy.required_on_create if _blank(payload.get(name)))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {column.key: column for column in model.__mapper__.columns}
    patch: dict = {}

    for name, raw in payload.items():
        if name not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {name}")
        column = columns.get(name)
        if column is None:
            raise ValidationError(f"Unknown field: {name}")

        value = None if raw is None else _coerce(column, raw)
        if value == "":
            value = None
        if value is None and not column.nullable:
            raise ValidationError(f"{name} cannot be blank")

        length = getattr(column.type, "length", None)
        if length and isinstance(value, str) and len(value) > length:
            raise ValidationError(f"{name} exceeds max length {length}")

        patch[name] = value

    return patch


def enforce_rules_measurement(patch: dict) -> None:
    """Normalize the unit to lowercase and reject anything but inches/cm."""
    unit = patch.get("unit")
    if unit is None:
        patch.pop("unit", None)
        return
    unit = unit.lower()
    if unit not in MEASUREMENT_UNITS:
        raise ValidationError(f"unit must be one of: {', '.join(MEASUREMENT_UNITS)}")
    patch["unit"] = unit
