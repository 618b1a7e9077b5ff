"""Request validation helpers shared by the Pydantic schemas and the routes."""

from __future__ import annotations

import datetime as dt
from typing import Any, Iterable, Optional


class ValidationError(ValueError):
    """Invalid request data. Routes answer it with HTTP 400."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


def to_naive_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is not None:
        return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


def validate_date(value: Any) -> dt.datetime:
    """Parse a date/datetime or ISO string into a naive UTC datetime."""
    if value is None or value == "":
        raise ValidationError("Date is required")
    if isinstance(value, dt.datetime):
        return to_naive_utc(value)
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_naive_utc(dt.datetime.fromisoformat(text))
        except ValueError:
            raise ValidationError("Invalid date format", "Date must be in a valid format (YYYY-MM-DD)")
    raise ValidationError("Invalid date format", "Date must be in a valid format (YYYY-MM-DD)")


def validate_date_range(start: dt.datetime, end: dt.datetime, message: str = "End date cannot be before start date") -> None:
    if end < start:
        raise ValidationError(message)


def validate_amount(value: Any) -> float:
    if value is None or value == "":
        raise ValidationError("Amount is required")
    if isinstance(value, bool):
        raise ValidationError("Amount must be a number")
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            raise ValidationError("Amount must be a valid number")
    if not isinstance(value, (int, float)):
        raise ValidationError("Amount must be a number")
    if value <= 0:
        raise ValidationError("Amount must be greater than zero", "Amount must be a positive number")
    return float(value)


def validate_required_fields(data: dict, required: Iterable[str]) -> None:
    required = list(required)
    missing = [name for name in required if data.get(name) is None or data.get(name) == ""]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            {"missing_fields": missing, "required_fields": required},
        )


def validate_future(value: dt.datetime, now: dt.datetime, message: str = "Date must be in the future") -> None:
    if value <= now:
        raise ValidationError(message)
