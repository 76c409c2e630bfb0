from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller role used for authorization."""

    ADMIN = "admin"
    MEMBER = "member"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class Aggregation(str, Enum):
    """Named aggregation pipelines understood by the person repository."""

    AVERAGE_AGE = "average_age"
    ATTENDANCE_TOTALS = "attendance_totals"
    DEPARTMENT_COUNTS = "department_counts"
