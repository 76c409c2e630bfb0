from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from ..cache.keys import record_key
from ..cache.store import CacheStore
from ..core.constants import DEFAULT_CACHE_TTL_SECONDS
from ..core.exceptions import NotFoundError, ValidationError
from ..loaders.scope import CreatorLoader, LoaderFactory
from .model import person_view
from .query import FilterSpec, PageEnvelope, PageSpec, QueryBuilder, SortSpec
from .repository import PersonRepository

logger = logging.getLogger(__name__)


class CacheAsideReader:
    """Check cache, else query the store and populate the cache.

    A cached list page is returned as-is (no re-validation against the
    store); staleness is bounded by the TTL and by write-time eviction.
    Absence is never cached.
    """

    def __init__(
        self,
        persons: PersonRepository,
        cache: CacheStore,
        loaders: LoaderFactory,
        *,
        query_builder: Optional[QueryBuilder] = None,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ):
        self._persons = persons
        self._cache = cache
        self._loaders = loaders
        self._query_builder = query_builder or QueryBuilder()
        if int(ttl_seconds) <= 0:
            raise ValueError("Cache TTL must be a positive number of seconds")
        self._ttl = int(ttl_seconds)

    @property
    def query_builder(self) -> QueryBuilder:
        return self._query_builder

    def list_records(
        self,
        filter_spec: Optional[FilterSpec] = None,
        sort_spec: Optional[SortSpec] = None,
        page_spec: Optional[PageSpec] = None,
    ) -> PageEnvelope:
        built = self._query_builder.build(filter_spec, sort_spec, page_spec)

        cached = self._cache.get(built.cache_key)
        if cached is not None:
            try:
                envelope = PageEnvelope.from_json(cached)
                logger.debug("cache hit %s", built.cache_key)
                return envelope
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning("Discarding unreadable cache entry %s: %s", built.cache_key, exc)

        logger.debug("cache miss %s", built.cache_key)
        records = self._persons.find(built.query, built.sort, built.skip, built.limit)
        total = self._persons.count(built.query)
        envelope = self._query_builder.page_envelope(
            [person_view(r) for r in records],
            total=total,
            page=built.page,
            limit=built.limit,
        )
        self._cache.set(built.cache_key, envelope.to_json(), self._ttl)
        return envelope

    def get_record(self, record_id: int, *, creators: Optional[CreatorLoader] = None) -> Dict[str, Any]:
        key = record_key(record_id)

        cached = self._cache.get(key)
        if cached is not None:
            try:
                view = json.loads(cached)
                logger.debug("cache hit %s", key)
                return view
            except ValueError as exc:
                logger.warning("Discarding unreadable cache entry %s: %s", key, exc)

        record = self._persons.find_by_id(int(record_id))
        if record is None:
            raise NotFoundError("Record not found")

        view = person_view(record)
        loader = creators if creators is not None else self._loaders.creators()
        view["creator"] = loader.load(record.created_by).result()

        self._cache.set(key, json.dumps(view, sort_keys=True, separators=(",", ":")), self._ttl)
        return view

    def search_records(self, text: str, page_spec: Optional[PageSpec] = None) -> PageEnvelope:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Search query is required")
        page = self._query_builder.validate_page(page_spec)
        skip = (page.page - 1) * page.limit

        records, total = self._persons.text_search(text, skip, page.limit)
        return self._query_builder.page_envelope(
            [person_view(r) for r in records],
            total=total,
            page=page.page,
            limit=page.limit,
        )
