from __future__ import annotations

import logging
from typing import Iterable

from ..cache.keys import record_key, record_list_prefix
from ..cache.store import CacheStore

logger = logging.getLogger(__name__)


class WriteInvalidator:
    """Evicts cache entries made stale by a confirmed store write.

    Every write clears the per-record key of each affected id and the whole
    list namespace; any write may change which records match some filter.
    """

    def __init__(self, cache: CacheStore):
        self._cache = cache

    def invalidate(self, record_ids: Iterable[int] = ()) -> None:
        ids = sorted({int(i) for i in record_ids})
        for record_id in ids:
            self._cache.delete(record_key(record_id))
        removed = self._cache.delete_by_prefix(record_list_prefix())
        logger.debug("Evicted %d record key(s) and %d list page(s)", len(ids), removed)
