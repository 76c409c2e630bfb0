from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from ..core.exceptions import ValidationError

_EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")


def require_non_empty(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_min_length(value: str, field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters")
    return value


def require_email(value: str, field_name: str = "Email") -> str:
    email = require_non_empty(value, field_name).lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email")
    return email


def require_int_range(value: Any, field_name: str, low: int, high: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if number < low:
        raise ValidationError(f"{field_name} must be at least {low}")
    if number > high:
        raise ValidationError(f"{field_name} must not exceed {high}")
    return number


def require_non_negative(value: Any, field_name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if number < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return number


def require_subjects(values: Iterable[str]) -> tuple[str, ...]:
    if isinstance(values, str) or values is None:
        raise ValidationError("Subjects must be a list")
    out: list[str] = []
    for v in values:
        s = require_non_empty(v, "Subject")
        if s not in out:
            out.append(s)
    if not out:
        raise ValidationError("At least one subject must be specified")
    return tuple(out)


def optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Expected a text value")
    return value.strip() or None


def optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")


def optional_bool(value: Any, field_name: str) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"true", "1", "yes"}:
        return True
    if text in {"false", "0", "no"}:
        return False
    raise ValidationError(f"{field_name} must be true or false")
