from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from ..common.datetime_utils import isoformat
from ..core.constants import PERSON_CODE_PREFIX, PERSON_CODE_WIDTH
from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceEntry:
    date: date
    status: AttendanceStatus
    remarks: Optional[str] = None


@dataclass(frozen=True)
class PersonRecord:
    """Domain entity: one person on the roster.

    Note: Plain data object (no DB access code).
    """

    record_id: int
    code: str
    name: str
    email: str
    age: int
    class_name: str
    subjects: tuple[str, ...]
    joining_date: date
    created_by: int
    created_at: datetime
    updated_at: datetime
    attendance: tuple[AttendanceEntry, ...] = field(default_factory=tuple)
    salary: Optional[float] = None
    department: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class NewPerson:
    """Validated input for a record insert (code and timestamps assigned by the write path)."""

    code: str
    name: str
    email: str
    age: int
    class_name: str
    subjects: tuple[str, ...]
    joining_date: date
    created_by: int
    created_at: datetime
    salary: Optional[float] = None
    department: Optional[str] = None
    is_active: bool = True


def format_person_code(sequence: int) -> str:
    return f"{PERSON_CODE_PREFIX}{int(sequence):0{PERSON_CODE_WIDTH}d}"


def attendance_rate(record: PersonRecord) -> float:
    total = len(record.attendance)
    if total == 0:
        return 0.0
    present = sum(1 for a in record.attendance if a.status == AttendanceStatus.PRESENT)
    return present / total * 100


def attendance_view(entry: AttendanceEntry) -> dict[str, Any]:
    return {
        "date": isoformat(entry.date),
        "status": entry.status.value,
        "remarks": entry.remarks,
    }


def person_view(record: PersonRecord) -> dict[str, Any]:
    """JSON-shaped view used for responses and cache payloads."""

    return {
        "id": record.record_id,
        "code": record.code,
        "name": record.name,
        "email": record.email,
        "age": record.age,
        "class_name": record.class_name,
        "subjects": list(record.subjects),
        "attendance": [attendance_view(a) for a in record.attendance],
        "attendance_rate": attendance_rate(record),
        "joining_date": isoformat(record.joining_date),
        "salary": record.salary,
        "department": record.department,
        "is_active": record.is_active,
        "created_by": record.created_by,
        "created_at": isoformat(record.created_at),
        "updated_at": isoformat(record.updated_at),
    }
