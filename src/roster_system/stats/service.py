from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..core.enums import Aggregation
from ..records.query import RecordQuery
from ..records.repository import PersonRepository


@dataclass(frozen=True)
class DepartmentCount:
    department: str
    count: int


@dataclass(frozen=True)
class RosterStats:
    total: int
    active: int
    inactive: int
    average_age: float
    attendance_rate: float
    department_counts: tuple[DepartmentCount, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "inactive": self.inactive,
            "average_age": self.average_age,
            "attendance_rate": self.attendance_rate,
            "department_counts": [
                {"department": d.department, "count": d.count} for d in self.department_counts
            ],
        }


class StatsAggregator:
    """Roster-wide metrics from repository count/aggregate primitives."""

    def __init__(self, persons: PersonRepository):
        self._persons = persons

    def get_stats(self) -> RosterStats:
        total = self._persons.count(RecordQuery(is_active=None))
        active = self._persons.count(RecordQuery(is_active=True))

        age_rows = self._persons.aggregate(Aggregation.AVERAGE_AGE)
        average_age = float((age_rows[0].get("average_age") if age_rows else None) or 0)

        attendance_rows = self._persons.aggregate(Aggregation.ATTENDANCE_TOTALS)
        totals = attendance_rows[0] if attendance_rows else {}
        entries = int(totals.get("total_entries") or 0)
        present = int(totals.get("present_entries") or 0)
        attendance_rate = present / entries * 100 if entries else 0.0

        departments = tuple(
            DepartmentCount(department=str(row["department"]), count=int(row["count"]))
            for row in self._persons.aggregate(Aggregation.DEPARTMENT_COUNTS)
            if row.get("department")
        )

        return RosterStats(
            total=total,
            active=active,
            inactive=total - active,
            average_age=average_age,
            attendance_rate=attendance_rate,
            department_counts=tuple(sorted(departments, key=lambda d: d.department)),
        )
