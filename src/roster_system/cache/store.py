from __future__ import annotations

import logging
from typing import Optional

import redis

from ..core.exceptions import CacheDegradedError

logger = logging.getLogger(__name__)


class CacheStore:
    """Key/value cache over Redis.

    Never raises to the caller: any Redis failure is logged as a warning
    and treated as a miss (reads) or a no-op (writes/evictions).
    """

    def __init__(self, client: "redis.Redis", *, scan_count: int = 500):
        self._client = client
        self._scan_count = int(scan_count)

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "CacheStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1,
        )
        return cls(client, **kwargs)

    def _degraded(self, op: str, key: str, exc: Exception) -> None:
        err = CacheDegradedError(f"cache {op} failed for {key!r}")
        logger.warning("%s (%s: %s)", err, type(exc).__name__, exc)

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._client.get(key)
        except redis.RedisError as exc:
            self._degraded("get", key, exc)
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            if ttl_seconds:
                self._client.setex(key, int(ttl_seconds), value)
            else:
                self._client.set(key, value)
        except redis.RedisError as exc:
            self._degraded("set", key, exc)

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as exc:
            self._degraded("delete", key, exc)

    def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; returns the count removed."""

        pattern = f"{prefix}*"
        removed = 0
        try:
            batch: list = []
            for key in self._client.scan_iter(match=pattern, count=self._scan_count):
                batch.append(key)
                if len(batch) >= self._scan_count:
                    removed += int(self._client.delete(*batch) or 0)
                    batch.clear()
            if batch:
                removed += int(self._client.delete(*batch) or 0)
        except redis.RedisError as exc:
            self._degraded("delete_by_prefix", pattern, exc)
        return removed

    def exists(self, key: str) -> bool:
        try:
            return bool(self._client.exists(key))
        except redis.RedisError as exc:
            self._degraded("exists", key, exc)
            return False

    def ttl(self, key: str) -> int:
        try:
            return int(self._client.ttl(key))
        except redis.RedisError as exc:
            self._degraded("ttl", key, exc)
            return -1

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as exc:
            self._degraded("ping", "-", exc)
            return False
