from __future__ import annotations

import hashlib
import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Sequence

from ..cache.keys import record_list_key
from ..common.validators import optional_int
from ..core.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..core.enums import SortDirection
from ..core.exceptions import ValidationError

SORTABLE_FIELDS = (
    "created_at",
    "updated_at",
    "name",
    "email",
    "age",
    "code",
    "class_name",
    "department",
    "salary",
    "joining_date",
)


@dataclass(frozen=True)
class FilterSpec:
    name: Optional[str] = None
    email: Optional[str] = None
    class_name: Optional[str] = None
    department: Optional[str] = None
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    subject: Optional[str] = None
    is_active: Optional[bool] = None
    record_ids: Optional[Sequence[int]] = None


@dataclass(frozen=True)
class SortSpec:
    field: str = "created_at"
    direction: SortDirection = SortDirection.DESC


@dataclass(frozen=True)
class PageSpec:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_PAGE_SIZE


@dataclass(frozen=True)
class RecordQuery:
    """Normalized predicate conjunction; ``None`` means "no constraint"."""

    record_ids: Optional[tuple[int, ...]] = None
    name_contains: Optional[str] = None
    email_contains: Optional[str] = None
    class_name: Optional[str] = None
    department: Optional[str] = None
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    subject: Optional[str] = None
    is_active: Optional[bool] = True

    def to_dict(self) -> dict[str, Any]:
        out = {k: v for k, v in asdict(self).items() if v is not None}
        if "record_ids" in out:
            out["record_ids"] = list(out["record_ids"])
        return out


@dataclass(frozen=True)
class PageEnvelope:
    items: list = field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_PAGE_SIZE
    pages: int = 0
    has_next_page: bool = False
    has_prev_page: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": list(self.items),
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
            "has_next_page": self.has_next_page,
            "has_prev_page": self.has_prev_page,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), default=str)

    @classmethod
    def from_json(cls, payload: str) -> "PageEnvelope":
        data = json.loads(payload)
        return cls(
            items=list(data.get("items") or []),
            total=int(data["total"]),
            page=int(data["page"]),
            limit=int(data["limit"]),
            pages=int(data["pages"]),
            has_next_page=bool(data["has_next_page"]),
            has_prev_page=bool(data["has_prev_page"]),
        )


@dataclass(frozen=True)
class BuiltQuery:
    query: RecordQuery
    sort: SortSpec
    page: int
    limit: int
    cache_key: str

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class QueryBuilder:
    """Turns filter/sort/page specs into a normalized query and cache key."""

    def __init__(self, *, max_page_size: int = MAX_PAGE_SIZE):
        self._max_page_size = int(max_page_size)

    @property
    def max_page_size(self) -> int:
        return self._max_page_size

    def normalize_filter(self, spec: Optional[FilterSpec]) -> RecordQuery:
        spec = spec or FilterSpec()

        age_min = optional_int(spec.age_min, "Minimum age")
        age_max = optional_int(spec.age_max, "Maximum age")
        if age_min is not None and age_max is not None and age_min > age_max:
            raise ValidationError("Minimum age cannot exceed maximum age")

        record_ids = None
        if spec.record_ids is not None:
            record_ids = tuple(sorted({int(i) for i in spec.record_ids}))

        return RecordQuery(
            record_ids=record_ids,
            name_contains=_clean_text(spec.name),
            email_contains=_clean_text(spec.email),
            class_name=_clean_text(spec.class_name),
            department=_clean_text(spec.department),
            age_min=age_min,
            age_max=age_max,
            subject=_clean_text(spec.subject),
            is_active=True if spec.is_active is None else bool(spec.is_active),
        )

    def normalize_sort(self, spec: Optional[SortSpec]) -> SortSpec:
        spec = spec or SortSpec()
        field_name = _clean_text(spec.field) or "created_at"
        if field_name not in SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort by {field_name!r}. Allowed: {', '.join(SORTABLE_FIELDS)}")
        try:
            direction = SortDirection(str(getattr(spec.direction, "value", spec.direction)).upper())
        except ValueError:
            raise ValidationError("Sort direction must be ASC or DESC")
        return SortSpec(field=field_name, direction=direction)

    def validate_page(self, spec: Optional[PageSpec]) -> PageSpec:
        spec = spec or PageSpec()
        page = optional_int(spec.page, "Page")
        limit = optional_int(spec.limit, "Limit")
        page = DEFAULT_PAGE if page is None else page
        limit = DEFAULT_PAGE_SIZE if limit is None else limit
        if page < 1:
            raise ValidationError("Page must be at least 1")
        if limit < 1 or limit > self._max_page_size:
            raise ValidationError(f"Limit must be between 1 and {self._max_page_size}")
        return PageSpec(page=page, limit=limit)

    def build(
        self,
        filter_spec: Optional[FilterSpec] = None,
        sort_spec: Optional[SortSpec] = None,
        page_spec: Optional[PageSpec] = None,
    ) -> BuiltQuery:
        query = self.normalize_filter(filter_spec)
        sort = self.normalize_sort(sort_spec)
        page = self.validate_page(page_spec)
        return BuiltQuery(
            query=query,
            sort=sort,
            page=page.page,
            limit=page.limit,
            cache_key=self.cache_key(query, sort, page),
        )

    @staticmethod
    def cache_key(query: RecordQuery, sort: SortSpec, page: PageSpec) -> str:
        canonical = json.dumps(
            {
                "query": query.to_dict(),
                "sort": {"field": sort.field, "direction": sort.direction.value},
                "skip": (page.page - 1) * page.limit,
                "limit": page.limit,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return record_list_key(hashlib.sha256(canonical.encode("utf-8")).hexdigest())

    @staticmethod
    def page_envelope(items: list, *, total: int, page: int, limit: int) -> PageEnvelope:
        pages = math.ceil(total / limit) if limit else 0
        return PageEnvelope(
            items=list(items),
            total=int(total),
            page=int(page),
            limit=int(limit),
            pages=pages,
            has_next_page=page < pages,
            has_prev_page=page > 1,
        )
