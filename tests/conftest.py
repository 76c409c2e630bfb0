from __future__ import annotations

import fnmatch
import importlib
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional, Sequence

import pytest
import redis

from roster_system.cache.store import CacheStore
from roster_system.container import build_container
from roster_system.core.enums import Aggregation, AttendanceStatus, Role, SortDirection
from roster_system.identities.model import IdentityRecord, Principal
from roster_system.main import create_app
from roster_system.records.model import AttendanceEntry, NewPerson, PersonRecord, format_person_code
from roster_system.records.query import RecordQuery, SortSpec


class InMemoryPersons:
    """PersonRepository fake with call counters."""

    def __init__(self):
        self._rows: dict[int, PersonRecord] = {}
        self._next_id = 1
        self._counter = 0
        self._clock = datetime(2026, 1, 1, 8, 0, 0)
        self.find_calls = 0
        self.count_calls = 0
        self.find_by_id_calls = 0
        self.insert_calls = 0
        self.fail_with: Optional[Exception] = None

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _matches(r: PersonRecord, q: RecordQuery) -> bool:
        if q.record_ids is not None and r.record_id not in q.record_ids:
            return False
        if q.name_contains and q.name_contains.lower() not in r.name.lower():
            return False
        if q.email_contains and q.email_contains.lower() not in r.email.lower():
            return False
        if q.class_name and r.class_name != q.class_name:
            return False
        if q.department and r.department != q.department:
            return False
        if q.age_min is not None and r.age < q.age_min:
            return False
        if q.age_max is not None and r.age > q.age_max:
            return False
        if q.subject and q.subject not in r.subjects:
            return False
        if q.is_active is not None and r.is_active != q.is_active:
            return False
        return True

    def all(self) -> list[PersonRecord]:
        return list(self._rows.values())

    def find(self, query: RecordQuery, sort: SortSpec, skip: int, limit: int) -> Sequence[PersonRecord]:
        self._check()
        self.find_calls += 1
        rows = [r for r in self._rows.values() if self._matches(r, query)]

        def key(r: PersonRecord):
            v = getattr(r, sort.field)
            return (v is not None, v if v is not None else "", r.record_id)

        rows.sort(key=key, reverse=sort.direction == SortDirection.DESC)
        return rows[skip:skip + limit]

    def count(self, query: RecordQuery) -> int:
        self._check()
        self.count_calls += 1
        return sum(1 for r in self._rows.values() if self._matches(r, query))

    def find_by_id(self, record_id: int) -> Optional[PersonRecord]:
        self._check()
        self.find_by_id_calls += 1
        return self._rows.get(int(record_id))

    def find_by_ids(self, record_ids: Iterable[int]) -> Sequence[PersonRecord]:
        self._check()
        return [self._rows[i] for i in sorted({int(i) for i in record_ids}) if i in self._rows]

    def find_by_email(self, email: str) -> Optional[PersonRecord]:
        self._check()
        email = email.strip().lower()
        return next((r for r in self._rows.values() if r.email == email), None)

    def next_code(self) -> str:
        self._check()
        self._counter += 1
        return format_person_code(self._counter)

    def insert(self, person: NewPerson) -> PersonRecord:
        self._check()
        self.insert_calls += 1
        record = PersonRecord(
            record_id=self._next_id,
            code=person.code,
            name=person.name,
            email=person.email,
            age=person.age,
            class_name=person.class_name,
            subjects=tuple(person.subjects),
            joining_date=person.joining_date,
            salary=person.salary,
            department=person.department,
            is_active=person.is_active,
            created_by=person.created_by,
            created_at=self._tick(),
            updated_at=self._clock,
        )
        self._rows[record.record_id] = record
        self._next_id += 1
        return record

    def update_by_id(self, record_id: int, patch: Mapping[str, Any]) -> Optional[PersonRecord]:
        self._check()
        current = self._rows.get(int(record_id))
        if current is None:
            return None
        changes = dict(patch)
        if "subjects" in changes:
            changes["subjects"] = tuple(changes["subjects"])
        updated = replace(current, **changes, updated_at=self._tick())
        self._rows[current.record_id] = updated
        return updated

    def append_attendance(self, record_id: int, entry: AttendanceEntry) -> Optional[PersonRecord]:
        self._check()
        current = self._rows.get(int(record_id))
        if current is None:
            return None
        updated = replace(current, attendance=current.attendance + (entry,), updated_at=self._tick())
        self._rows[current.record_id] = updated
        return updated

    def update_many(self, record_ids: Sequence[int], patch: Mapping[str, Any]) -> int:
        self._check()
        touched = 0
        for record_id in sorted({int(i) for i in record_ids}):
            if self.update_by_id(record_id, patch) is not None:
                touched += 1
        return touched

    def aggregate(self, pipeline: Aggregation) -> Sequence[dict]:
        self._check()
        rows = list(self._rows.values())
        if pipeline == Aggregation.AVERAGE_AGE:
            avg = sum(r.age for r in rows) / len(rows) if rows else None
            return [{"average_age": avg}]
        if pipeline == Aggregation.ATTENDANCE_TOTALS:
            entries = [a for r in rows for a in r.attendance]
            present = sum(1 for a in entries if a.status == AttendanceStatus.PRESENT)
            return [{"total_entries": len(entries), "present_entries": present}]
        if pipeline == Aggregation.DEPARTMENT_COUNTS:
            counts: dict = {}
            for r in rows:
                if r.is_active:
                    counts[r.department] = counts.get(r.department, 0) + 1
            return [{"department": d, "count": c} for d, c in counts.items()]
        raise AssertionError(pipeline)

    def text_search(self, text: str, skip: int, limit: int):
        self._check()
        tokens = [t.lower() for t in text.split()]
        hits = [
            r
            for r in self._rows.values()
            if r.is_active and any(t in r.name.lower() or t in r.email.lower() for t in tokens)
        ]
        hits.sort(key=lambda r: r.record_id, reverse=True)
        return hits[skip:skip + limit], len(hits)


class InMemoryIdentities:
    def __init__(self):
        self._rows: dict[int, IdentityRecord] = {}
        self._next_id = 1
        self.find_by_ids_calls: list[list[int]] = []

    def add(self, *, email: str, role: Role = Role.MEMBER, person_id: Optional[int] = None,
            first_name: str = "Test", last_name: str = "User", password_hash: str = "x") -> IdentityRecord:
        identity_id = self.create_identity(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role,
            person_id=person_id,
        )
        return self._rows[identity_id]

    def get_by_id(self, identity_id: int) -> Optional[IdentityRecord]:
        return self._rows.get(int(identity_id))

    def get_by_email(self, email: str) -> Optional[IdentityRecord]:
        return next((i for i in self._rows.values() if i.email == email.strip().lower()), None)

    def find_by_ids(self, identity_ids: Iterable[int]) -> Sequence[IdentityRecord]:
        ids = list(identity_ids)
        self.find_by_ids_calls.append(ids)
        return [self._rows[i] for i in ids if i in self._rows]

    def create_identity(self, *, email, password_hash, first_name, last_name, role, person_id=None) -> int:
        identity_id = self._next_id
        self._next_id += 1
        self._rows[identity_id] = IdentityRecord(
            identity_id=identity_id,
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role,
            person_id=person_id,
            created_at=datetime(2026, 1, 1, 8, 0, 0),
        )
        return identity_id

    def touch_last_login(self, identity_id: int, *, at: datetime) -> None:
        current = self._rows[int(identity_id)]
        self._rows[current.identity_id] = replace(current, last_login=at)

    def deactivate(self, identity_id: int) -> None:
        current = self._rows[int(identity_id)]
        self._rows[current.identity_id] = replace(current, is_active=False)


class FakeRedis:
    """Just enough of redis.Redis for CacheStore (string values, TTL kept as metadata)."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.down = False
        self.get_calls = 0

    def _check(self) -> None:
        if self.down:
            raise redis.exceptions.ConnectionError("Connection refused")

    def get(self, key):
        self._check()
        self.get_calls += 1
        return self.data.get(key)

    def set(self, key, value):
        self._check()
        self.data[key] = value
        self.ttls.pop(key, None)
        return True

    def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = int(ttl)
        return True

    def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    def scan_iter(self, match=None, count=None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def exists(self, key):
        self._check()
        return 1 if key in self.data else 0

    def ttl(self, key):
        self._check()
        if key not in self.data:
            return -2
        return self.ttls.get(key, -1)

    def ping(self):
        self._check()
        return True


@pytest.fixture
def settings():
    return importlib.import_module("roster_system.config.testing")


@pytest.fixture
def persons():
    return InMemoryPersons()


@pytest.fixture
def identities():
    return InMemoryIdentities()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return CacheStore(fake_redis)


@pytest.fixture
def container(settings, persons, identities, cache):
    return build_container(settings=settings, persons_repo=persons, identities_repo=identities, cache=cache)


@pytest.fixture
def service(container):
    return container.record_service


@pytest.fixture
def admin_identity(identities):
    return identities.add(email="admin@example.com", role=Role.ADMIN, first_name="Admin", last_name="User")


@pytest.fixture
def admin(admin_identity):
    return Principal(identity_id=admin_identity.identity_id, email=admin_identity.email, role=Role.ADMIN)


@pytest.fixture
def new_record_data():
    return {
        "name": "Jane Smith",
        "email": "jane@x.com",
        "age": 28,
        "class_name": "Grade 10",
        "subjects": ["Math"],
    }


@pytest.fixture
def make_member(identities):
    def _make(person_id: Optional[int], email: str = "member@example.com") -> Principal:
        identity = identities.add(email=email, role=Role.MEMBER, person_id=person_id)
        return Principal(
            identity_id=identity.identity_id,
            email=identity.email,
            role=Role.MEMBER,
            person_ref=person_id,
        )

    return _make


@pytest.fixture
def app(settings, container):
    return create_app(settings=settings, container=container)


@pytest.fixture
def client(app):
    return app.test_client()
