from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..core.constants import PERSON_CODE_COUNTER
from ..core.enums import Aggregation, AttendanceStatus, SortDirection
from ..core.exceptions import StoreError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, escape_like, fetchall, fetchone, placeholders
from .model import AttendanceEntry, NewPerson, PersonRecord, format_person_code
from .query import RecordQuery, SortSpec
from .repository import PersonRepository

_PERSON_COLUMNS = """
    p.person_id, p.code, p.name, p.email, p.age, p.class_name, p.joining_date,
    p.salary, p.department, p.is_active, p.created_by, p.created_at, p.updated_at
"""

# Patch field -> column (subjects live in person_subjects)
_PATCH_COLUMNS = {
    "name": "name",
    "email": "email",
    "age": "age",
    "class_name": "class_name",
    "salary": "salary",
    "department": "department",
    "is_active": "is_active",
    "joining_date": "joining_date",
}

_SORT_COLUMNS = {
    "created_at": "p.created_at",
    "updated_at": "p.updated_at",
    "name": "p.name",
    "email": "p.email",
    "age": "p.age",
    "code": "p.code",
    "class_name": "p.class_name",
    "department": "p.department",
    "salary": "p.salary",
    "joining_date": "p.joining_date",
}


def _where(query: RecordQuery) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []

    if query.record_ids is not None:
        if not query.record_ids:
            clauses.append("1=0")
        else:
            clauses.append(f"p.person_id IN ({placeholders(len(query.record_ids))})")
            params.extend(query.record_ids)
    if query.name_contains:
        clauses.append("p.name LIKE %s")
        params.append(f"%{escape_like(query.name_contains)}%")
    if query.email_contains:
        clauses.append("p.email LIKE %s")
        params.append(f"%{escape_like(query.email_contains)}%")
    if query.class_name:
        clauses.append("p.class_name = %s")
        params.append(query.class_name)
    if query.department:
        clauses.append("p.department = %s")
        params.append(query.department)
    if query.age_min is not None:
        clauses.append("p.age >= %s")
        params.append(query.age_min)
    if query.age_max is not None:
        clauses.append("p.age <= %s")
        params.append(query.age_max)
    if query.subject:
        clauses.append(
            "EXISTS (SELECT 1 FROM person_subjects s WHERE s.person_id = p.person_id AND s.subject = %s)"
        )
        params.append(query.subject)
    if query.is_active is not None:
        clauses.append("p.is_active = %s")
        params.append(1 if query.is_active else 0)

    sql = " AND ".join(clauses) if clauses else "1=1"
    return sql, params


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


class MySQLPersonRepository(PersonRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _hydrate(self, cur, rows: List[Dict[str, Any]]) -> List[PersonRecord]:
        if not rows:
            return []
        ids = [int(r["person_id"]) for r in rows]
        marks = placeholders(len(ids))

        cur.execute(
            f"SELECT person_id, subject FROM person_subjects WHERE person_id IN ({marks}) ORDER BY person_id, position",
            tuple(ids),
        )
        subjects: Dict[int, list[str]] = {}
        for r in fetchall(cur):
            subjects.setdefault(int(r["person_id"]), []).append(r["subject"])

        cur.execute(
            f"""
            SELECT person_id, attendance_date, status, remarks
            FROM person_attendance
            WHERE person_id IN ({marks})
            ORDER BY person_id, attendance_id
            """,
            tuple(ids),
        )
        attendance: Dict[int, list[AttendanceEntry]] = {}
        for r in fetchall(cur):
            attendance.setdefault(int(r["person_id"]), []).append(
                AttendanceEntry(
                    date=r["attendance_date"],
                    status=AttendanceStatus(r["status"]),
                    remarks=r.get("remarks"),
                )
            )

        out: list[PersonRecord] = []
        for r in rows:
            pid = int(r["person_id"])
            out.append(
                PersonRecord(
                    record_id=pid,
                    code=r["code"],
                    name=r["name"],
                    email=r["email"],
                    age=int(r["age"]),
                    class_name=r["class_name"],
                    subjects=tuple(subjects.get(pid, [])),
                    attendance=tuple(attendance.get(pid, [])),
                    joining_date=r["joining_date"],
                    salary=_to_float(r.get("salary")),
                    department=r.get("department"),
                    is_active=bool(r.get("is_active", True)),
                    created_by=int(r["created_by"]),
                    created_at=r["created_at"],
                    updated_at=r["updated_at"],
                )
            )
        return out

    def find(self, query: RecordQuery, sort: SortSpec, skip: int, limit: int) -> Sequence[PersonRecord]:
        where, params = _where(query)
        column = _SORT_COLUMNS[sort.field]
        direction = "ASC" if sort.direction == SortDirection.ASC else "DESC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_PERSON_COLUMNS}
                FROM persons p
                WHERE {where}
                ORDER BY {column} {direction}, p.person_id {direction}
                LIMIT %s OFFSET %s
                """,
                (*params, int(limit), int(skip)),
            )
            return self._hydrate(cur, fetchall(cur))

    def count(self, query: RecordQuery) -> int:
        where, params = _where(query)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM persons p WHERE {where}", tuple(params))
            row = fetchone(cur)
            return int(row["n"]) if row else 0

    def find_by_id(self, record_id: int) -> Optional[PersonRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_PERSON_COLUMNS} FROM persons p WHERE p.person_id=%s", (int(record_id),))
            row = fetchone(cur)
            if not row:
                return None
            return self._hydrate(cur, [row])[0]

    def find_by_ids(self, record_ids: Iterable[int]) -> Sequence[PersonRecord]:
        ids = sorted({int(i) for i in record_ids})
        if not ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_PERSON_COLUMNS} FROM persons p WHERE p.person_id IN ({placeholders(len(ids))}) ORDER BY p.person_id",
                tuple(ids),
            )
            return self._hydrate(cur, fetchall(cur))

    def find_by_email(self, email: str) -> Optional[PersonRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_PERSON_COLUMNS} FROM persons p WHERE p.email=%s", (email.strip().lower(),))
            row = fetchone(cur)
            if not row:
                return None
            return self._hydrate(cur, [row])[0]

    def next_code(self) -> str:
        # LAST_INSERT_ID(expr) makes increment-and-read atomic per connection.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE counters SET value = LAST_INSERT_ID(value + 1) WHERE name=%s",
                (PERSON_CODE_COUNTER,),
            )
            if cur.rowcount != 1:
                raise StoreError("Person code counter is missing")
            cur.execute("SELECT LAST_INSERT_ID() AS value")
            row = fetchone(cur)
            return format_person_code(int(row["value"]))

    def _replace_subjects(self, cur, record_id: int, subjects: Sequence[str]) -> None:
        cur.execute("DELETE FROM person_subjects WHERE person_id=%s", (record_id,))
        if subjects:
            cur.executemany(
                "INSERT INTO person_subjects (person_id, position, subject) VALUES (%s, %s, %s)",
                [(record_id, i, s) for i, s in enumerate(subjects)],
            )

    def insert(self, person: NewPerson) -> PersonRecord:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO persons (
                    code, name, email, age, class_name, joining_date, salary, department,
                    is_active, created_by, created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    person.code,
                    person.name,
                    person.email,
                    person.age,
                    person.class_name,
                    person.joining_date,
                    person.salary,
                    person.department,
                    1 if person.is_active else 0,
                    person.created_by,
                    person.created_at,
                    person.created_at,
                ),
            )
            record_id = int(cur.lastrowid)
            self._replace_subjects(cur, record_id, person.subjects)

        created = self.find_by_id(record_id)
        if created is None:
            raise StoreError("Inserted record could not be read back")
        return created

    def _apply_patch(self, cur, record_ids: Sequence[int], patch: Mapping[str, Any]) -> None:
        sets: list[str] = []
        params: list[Any] = []
        for key, column in _PATCH_COLUMNS.items():
            if key in patch:
                value = patch[key]
                if key == "is_active":
                    value = 1 if value else 0
                sets.append(f"{column}=%s")
                params.append(value)
        sets.append("updated_at=%s")
        params.append(now_utc())

        cur.execute(
            f"UPDATE persons SET {', '.join(sets)} WHERE person_id IN ({placeholders(len(record_ids))})",
            (*params, *record_ids),
        )
        if "subjects" in patch:
            for record_id in record_ids:
                self._replace_subjects(cur, record_id, patch["subjects"])

    def _lock_existing(self, cur, record_ids: Sequence[int]) -> list[int]:
        cur.execute(
            f"SELECT person_id FROM persons WHERE person_id IN ({placeholders(len(record_ids))}) FOR UPDATE",
            tuple(record_ids),
        )
        return [int(r["person_id"]) for r in fetchall(cur)]

    def update_by_id(self, record_id: int, patch: Mapping[str, Any]) -> Optional[PersonRecord]:
        record_id = int(record_id)
        with db_cursor(self._conn_factory) as (_, cur):
            if not self._lock_existing(cur, [record_id]):
                return None
            self._apply_patch(cur, [record_id], patch)
        return self.find_by_id(record_id)

    def append_attendance(self, record_id: int, entry: AttendanceEntry) -> Optional[PersonRecord]:
        record_id = int(record_id)
        with db_cursor(self._conn_factory) as (_, cur):
            if not self._lock_existing(cur, [record_id]):
                return None
            cur.execute(
                """
                INSERT INTO person_attendance (person_id, attendance_date, status, remarks)
                VALUES (%s, %s, %s, %s)
                """,
                (record_id, entry.date, entry.status.value, entry.remarks),
            )
            cur.execute("UPDATE persons SET updated_at=%s WHERE person_id=%s", (now_utc(), record_id))
        return self.find_by_id(record_id)

    def update_many(self, record_ids: Sequence[int], patch: Mapping[str, Any]) -> int:
        ids = sorted({int(i) for i in record_ids})
        if not ids:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            existing = self._lock_existing(cur, ids)
            if existing:
                self._apply_patch(cur, existing, patch)
            return len(existing)

    def aggregate(self, pipeline: Aggregation) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            if pipeline == Aggregation.AVERAGE_AGE:
                cur.execute("SELECT AVG(age) AS average_age FROM persons")
                row = fetchone(cur) or {}
                return [{"average_age": _to_float(row.get("average_age"))}]

            if pipeline == Aggregation.ATTENDANCE_TOTALS:
                cur.execute(
                    """
                    SELECT COUNT(*) AS total_entries,
                           COALESCE(SUM(status = 'present'), 0) AS present_entries
                    FROM person_attendance
                    """
                )
                row = fetchone(cur) or {}
                return [
                    {
                        "total_entries": int(row.get("total_entries") or 0),
                        "present_entries": int(row.get("present_entries") or 0),
                    }
                ]

            if pipeline == Aggregation.DEPARTMENT_COUNTS:
                cur.execute(
                    """
                    SELECT department, COUNT(*) AS count
                    FROM persons
                    WHERE is_active = 1
                    GROUP BY department
                    ORDER BY department
                    """
                )
                return [{"department": r.get("department"), "count": int(r["count"])} for r in fetchall(cur)]

        raise StoreError(f"Unsupported aggregation: {pipeline!r}")

    def text_search(self, text: str, skip: int, limit: int) -> tuple[Sequence[PersonRecord], int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS n FROM persons p
                WHERE MATCH(p.name, p.email) AGAINST (%s IN NATURAL LANGUAGE MODE) AND p.is_active = 1
                """,
                (text,),
            )
            total = int((fetchone(cur) or {}).get("n") or 0)
            cur.execute(
                f"""
                SELECT {_PERSON_COLUMNS},
                       MATCH(p.name, p.email) AGAINST (%s IN NATURAL LANGUAGE MODE) AS score
                FROM persons p
                WHERE MATCH(p.name, p.email) AGAINST (%s IN NATURAL LANGUAGE MODE) AND p.is_active = 1
                ORDER BY score DESC, p.person_id DESC
                LIMIT %s OFFSET %s
                """,
                (text, text, int(limit), int(skip)),
            )
            return self._hydrate(cur, fetchall(cur)), total
