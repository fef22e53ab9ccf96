from datetime import date, datetime
from typing import Any, Type, TypeVar

from .errors import (
    FieldValidationError,
    InvalidAmountError,
    InvalidDateError,
    InvalidStatusError,
)

StatusT = TypeVar("StatusT")


def parse_date(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
    raise InvalidDateError(field, f"'{value}' is not a valid date")


def parse_status(status_cls: Type[StatusT], value: Any, field: str = "status") -> StatusT:
    try:
        return status_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in status_cls)
        raise InvalidStatusError(field, f"must be one of: {allowed}")


def require_text(value: Any, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise FieldValidationError(field, "is required")
    text = value.strip()
    if len(text) > max_length:
        raise FieldValidationError(field, f"cannot exceed {max_length} characters")
    return text


def require_positive(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidAmountError(field, "must be a positive integer")
    return value


def require_non_negative(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidAmountError(field, "cannot be negative")
    return value


def check_points_range(points_min: int, points_max: int) -> None:
    require_non_negative(points_min, "points_min")
    require_non_negative(points_max, "points_max")
    if points_min > points_max:
        raise FieldValidationError("points_min", "must be less than or equal to points_max")


def check_date_range(start: Any, end: Any) -> tuple[date, date]:
    start_date = parse_date(start, "start_date")
    end_date = parse_date(end, "end_date")
    if start_date >= end_date:
        raise FieldValidationError("start_date", "must be before end_date")
    return start_date, end_date
