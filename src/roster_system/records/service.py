from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..authz.guard import AuthorizationGuard
from ..common.datetime_utils import coerce_date, now_utc
from ..common.validators import (
    optional_text,
    require_email,
    require_int_range,
    require_non_empty,
    require_non_negative,
    require_subjects,
)
from ..core.constants import MAX_AGE, MIN_AGE
from ..core.enums import AttendanceStatus
from ..core.exceptions import DuplicateKeyError, NotFoundError, ValidationError
from ..identities.model import Principal
from ..loaders.scope import CreatorLoader
from ..stats.service import RosterStats, StatsAggregator
from .invalidator import WriteInvalidator
from .model import AttendanceEntry, NewPerson, person_view
from .query import FilterSpec, PageEnvelope, PageSpec, SortSpec
from .reader import CacheAsideReader
from .repository import PersonRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "email",
    "age",
    "class_name",
    "subjects",
    "salary",
    "department",
    "is_active",
    "joining_date",
)
IMMUTABLE_FIELDS = ("id", "record_id", "code", "created_by", "attendance", "created_at", "updated_at")
REQUIRED_ON_CREATE = ("name", "email", "age", "class_name", "subjects")


def _clean_field(key: str, value: Any) -> Any:
    if key == "name":
        return require_non_empty(value, "Name")
    if key == "email":
        return require_email(value)
    if key == "age":
        return require_int_range(value, "Age", MIN_AGE, MAX_AGE)
    if key == "class_name":
        return require_non_empty(value, "Class")
    if key == "subjects":
        return require_subjects(value)
    if key == "salary":
        return require_non_negative(value, "Salary")
    if key == "department":
        return optional_text(value)
    if key == "is_active":
        if not isinstance(value, bool):
            raise ValidationError("is_active must be true or false")
        return value
    if key == "joining_date":
        return coerce_date(value)
    raise ValidationError(f"Unknown field: {key}")


def clean_fields(data: Mapping[str, Any], *, allow_email: bool = True) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in data.items():
        if key in IMMUTABLE_FIELDS:
            raise ValidationError(f"{key} cannot be changed")
        if key not in UPDATABLE_FIELDS:
            raise ValidationError(f"Unknown field: {key}")
        if key == "email" and not allow_email:
            raise ValidationError("email cannot be updated for several records at once")
        out[key] = _clean_field(key, value)
    return out


class RecordService:
    """Use cases over roster records.

    Every operation passes the AuthorizationGuard first; writes go to the
    store and only then through the WriteInvalidator.
    """

    def __init__(
        self,
        persons: PersonRepository,
        reader: CacheAsideReader,
        invalidator: WriteInvalidator,
        stats: StatsAggregator,
        guard: Optional[AuthorizationGuard] = None,
    ):
        self._persons = persons
        self._reader = reader
        self._invalidator = invalidator
        self._stats = stats
        self._guard = guard or AuthorizationGuard()

    # Reads

    def list_records(
        self,
        principal: Optional[Principal],
        filter_spec: Optional[FilterSpec] = None,
        sort_spec: Optional[SortSpec] = None,
        page_spec: Optional[PageSpec] = None,
    ) -> PageEnvelope:
        policy = self._guard.policy_for(principal)
        scoped = policy.scope_list(filter_spec or FilterSpec())
        return self._reader.list_records(scoped, sort_spec, page_spec)

    def get_record(
        self,
        principal: Optional[Principal],
        record_id: int,
        *,
        creators: Optional[CreatorLoader] = None,
    ) -> Dict[str, Any]:
        self._guard.policy_for(principal).check_read(int(record_id))
        return self._reader.get_record(int(record_id), creators=creators)

    def search_records(
        self,
        principal: Optional[Principal],
        text: str,
        page_spec: Optional[PageSpec] = None,
    ) -> PageEnvelope:
        self._guard.policy_for(principal).check_search()
        return self._reader.search_records(text, page_spec)

    def get_stats(self, principal: Optional[Principal]) -> RosterStats:
        self._guard.policy_for(principal).check_stats()
        return self._stats.get_stats()

    # Writes

    def create_record(self, principal: Optional[Principal], data: Mapping[str, Any]) -> Dict[str, Any]:
        policy = self._guard.policy_for(principal)
        policy.check_create()

        missing = [f for f in REQUIRED_ON_CREATE if data.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")
        fields = clean_fields(data)

        if self._persons.find_by_email(fields["email"]):
            raise DuplicateKeyError("Record with this email already exists")

        now = now_utc()
        new_person = NewPerson(
            code=self._persons.next_code(),
            name=fields["name"],
            email=fields["email"],
            age=fields["age"],
            class_name=fields["class_name"],
            subjects=fields["subjects"],
            joining_date=fields.get("joining_date") or now.date(),
            salary=fields.get("salary"),
            department=fields.get("department"),
            is_active=fields.get("is_active", True),
            created_by=policy.principal.identity_id,
            created_at=now,
        )
        record = self._persons.insert(new_person)
        self._invalidator.invalidate([record.record_id])
        logger.info("Record %s (%s) created by %s", record.record_id, record.code, record.created_by)
        return person_view(record)

    def update_record(
        self,
        principal: Optional[Principal],
        record_id: int,
        patch: Mapping[str, Any],
    ) -> Dict[str, Any]:
        record_id = int(record_id)
        self._guard.policy_for(principal).check_update(record_id, patch.keys())

        fields = clean_fields(patch)
        if not fields:
            raise ValidationError("Nothing to update")

        if "email" in fields:
            existing = self._persons.find_by_email(fields["email"])
            if existing and existing.record_id != record_id:
                raise DuplicateKeyError("Email already in use")

        record = self._persons.update_by_id(record_id, fields)
        if record is None:
            raise NotFoundError("Record not found")
        self._invalidator.invalidate([record_id])
        logger.info("Record %s updated (%s)", record_id, ", ".join(sorted(fields)))
        return person_view(record)

    def delete_record(self, principal: Optional[Principal], record_id: int) -> bool:
        record_id = int(record_id)
        self._guard.policy_for(principal).check_delete(record_id)

        record = self._persons.update_by_id(record_id, {"is_active": False})
        if record is None:
            raise NotFoundError("Record not found")
        self._invalidator.invalidate([record_id])
        logger.info("Record %s deactivated", record_id)
        return True

    def mark_attendance(
        self,
        principal: Optional[Principal],
        record_id: int,
        entry: Mapping[str, Any],
    ) -> Dict[str, Any]:
        record_id = int(record_id)
        self._guard.policy_for(principal).check_attendance(record_id)

        if entry.get("date") in (None, ""):
            raise ValidationError("Attendance date is required")
        try:
            status = AttendanceStatus(str(entry.get("status", "")).lower())
        except ValueError:
            raise ValidationError("Status must be one of: present, absent, late")
        attendance = AttendanceEntry(
            date=coerce_date(entry["date"]),
            status=status,
            remarks=optional_text(entry.get("remarks")),
        )

        record = self._persons.append_attendance(record_id, attendance)
        if record is None:
            raise NotFoundError("Record not found")
        self._invalidator.invalidate([record_id])
        logger.info("Attendance %s on %s recorded for %s", status.value, attendance.date, record_id)
        return person_view(record)

    def bulk_update_records(
        self,
        principal: Optional[Principal],
        record_ids: Iterable[int],
        patch: Mapping[str, Any],
    ) -> List[Dict[str, Any]]:
        self._guard.policy_for(principal).check_bulk_update()

        ids = sorted({int(i) for i in record_ids})
        if not ids:
            raise ValidationError("At least one record id is required")
        fields = clean_fields(patch, allow_email=False)
        if not fields:
            raise ValidationError("Nothing to update")

        affected = self._persons.update_many(ids, fields)
        self._invalidator.invalidate(ids)
        logger.info("Bulk update touched %d of %d record(s)", affected, len(ids))
        return [person_view(r) for r in self._persons.find_by_ids(ids)]
