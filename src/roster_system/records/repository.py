from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from ..core.enums import Aggregation
from .model import AttendanceEntry, NewPerson, PersonRecord
from .query import RecordQuery, SortSpec


class PersonRepository(Protocol):
    """Repository interface for PersonRecord.

    Note (DIP): services depend on this interface, not on a concrete DB.
    All methods may raise StoreUnavailableError / StoreError.
    """

    def find(self, query: RecordQuery, sort: SortSpec, skip: int, limit: int) -> Sequence[PersonRecord]:
        raise NotImplementedError

    def count(self, query: RecordQuery) -> int:
        raise NotImplementedError

    def find_by_id(self, record_id: int) -> Optional[PersonRecord]:
        raise NotImplementedError

    def find_by_ids(self, record_ids: Iterable[int]) -> Sequence[PersonRecord]:
        raise NotImplementedError

    def find_by_email(self, email: str) -> Optional[PersonRecord]:
        raise NotImplementedError

    def next_code(self) -> str:
        """Atomically allocate the next sequential person code."""

        raise NotImplementedError

    def insert(self, person: NewPerson) -> PersonRecord:
        raise NotImplementedError

    def update_by_id(self, record_id: int, patch: Mapping[str, Any]) -> Optional[PersonRecord]:
        raise NotImplementedError

    def append_attendance(self, record_id: int, entry: AttendanceEntry) -> Optional[PersonRecord]:
        raise NotImplementedError

    def update_many(self, record_ids: Sequence[int], patch: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def aggregate(self, pipeline: Aggregation) -> Sequence[dict]:
        raise NotImplementedError

    def text_search(self, text: str, skip: int, limit: int) -> tuple[Sequence[PersonRecord], int]:
        raise NotImplementedError
