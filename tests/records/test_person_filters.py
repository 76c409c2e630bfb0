from __future__ import annotations

import pytest

from roster_system.records.mysql_person_repository import _where
from roster_system.records.query import RecordQuery


@pytest.mark.parametrize(
    "query, sql, params",
    [
        (RecordQuery(is_active=None), "1=1", []),
        (RecordQuery(), "p.is_active = %s", [1]),
        (RecordQuery(is_active=False), "p.is_active = %s", [0]),
        (RecordQuery(record_ids=(), is_active=None), "1=0", []),
        (RecordQuery(record_ids=(3, 5), is_active=None), "p.person_id IN (%s, %s)", [3, 5]),
        (RecordQuery(name_contains="50%_a", is_active=None), "p.name LIKE %s", ["%50\\%\\_a%"]),
        (RecordQuery(email_contains="x.com", is_active=None), "p.email LIKE %s", ["%x.com%"]),
        (
            RecordQuery(age_min=20, age_max=30, is_active=None),
            "p.age >= %s AND p.age <= %s",
            [20, 30],
        ),
        (
            RecordQuery(class_name="Grade 10", department="Arts", is_active=None),
            "p.class_name = %s AND p.department = %s",
            ["Grade 10", "Arts"],
        ),
    ],
)
def test_where_clause(query, sql, params):
    assert _where(query) == (sql, params)


def test_subject_filter_uses_exists():
    sql, params = _where(RecordQuery(subject="Math", is_active=True))

    assert sql.startswith("EXISTS (SELECT 1 FROM person_subjects s")
    assert sql.endswith("AND p.is_active = %s")
    assert params == ["Math", 1]
