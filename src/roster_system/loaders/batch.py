from __future__ import annotations

import logging
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Mapping, Optional, Sequence, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = logging.getLogger(__name__)

_PENDING = object()


class Deferred(Generic[K, V]):
    """Handle for one key of a BatchLoader.

    ``result()`` flushes the loader's pending batch if this key has not been
    fetched yet, then returns the value (``None`` when the key is absent) or
    re-raises the batch error.
    """

    __slots__ = ("key", "_loader", "_value", "_error")

    def __init__(self, key: K, loader: "BatchLoader[K, V]"):
        self.key = key
        self._loader = loader
        self._value: object = _PENDING
        self._error: Optional[BaseException] = None

    @property
    def done(self) -> bool:
        return self._value is not _PENDING or self._error is not None

    def _resolve(self, value: Optional[V]) -> None:
        self._value = value

    def _fail(self, error: BaseException) -> None:
        self._error = error

    def result(self) -> Optional[V]:
        if not self.done:
            self._loader.dispatch()
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]


class BatchLoader(Generic[K, V]):
    """Per-request loader that coalesces key lookups into batched calls.

    ``batch_fn`` receives the distinct pending keys (first-request order) and
    returns a mapping key -> value; keys missing from the mapping resolve to
    ``None``. Results are memoized for the lifetime of the loader, so a
    loader must never outlive the request that created it.
    """

    def __init__(
        self,
        batch_fn: Callable[[Sequence[K]], Mapping[K, V]],
        *,
        max_batch_size: Optional[int] = None,
        name: str = "loader",
    ):
        if max_batch_size is not None and max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        self._batch_fn = batch_fn
        self._max_batch_size = max_batch_size
        self._name = name
        self._memo: Dict[K, Deferred[K, V]] = {}
        self._queue: List[K] = []
        self.batch_calls = 0

    def load(self, key: K) -> Deferred[K, V]:
        deferred = self._memo.get(key)
        if deferred is None:
            deferred = Deferred(key, self)
            self._memo[key] = deferred
            self._queue.append(key)
        return deferred

    def load_many(self, keys: Iterable[K]) -> List[Optional[V]]:
        deferreds = [self.load(k) for k in keys]
        self.dispatch()
        return [d.result() for d in deferreds]

    def prime(self, key: K, value: V) -> None:
        if key not in self._memo:
            deferred = Deferred(key, self)
            deferred._resolve(value)
            self._memo[key] = deferred

    def clear(self, key: K) -> None:
        self._memo.pop(key, None)
        if key in self._queue:
            self._queue.remove(key)

    def dispatch(self) -> None:
        """Flush every pending key through ``batch_fn``."""

        if not self._queue:
            return
        queue, self._queue = self._queue, []

        size = self._max_batch_size or len(queue)
        for start in range(0, len(queue), size):
            self._run_batch(queue[start:start + size])

    def _run_batch(self, keys: List[K]) -> None:
        self.batch_calls += 1
        logger.debug("%s: batch of %d key(s)", self._name, len(keys))
        try:
            results = self._batch_fn(list(keys))
        except Exception as exc:
            for key in keys:
                deferred = self._memo.pop(key, None)
                if deferred is not None:
                    deferred._fail(exc)
            logger.warning("%s: batch failed: %s", self._name, exc)
            return

        for key in keys:
            deferred = self._memo.get(key)
            if deferred is not None and not deferred.done:
                deferred._resolve(results.get(key))
