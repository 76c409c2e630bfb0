from __future__ import annotations

import logging

from roster_system.cache.keys import record_key, record_list_key, record_list_prefix
from roster_system.cache.store import CacheStore


def test_set_get_with_ttl(cache, fake_redis):
    cache.set("record:1", "{}", 300)

    assert cache.get("record:1") == "{}"
    assert cache.exists("record:1") is True
    assert cache.ttl("record:1") == 300


def test_get_decodes_bytes(fake_redis):
    fake_redis.data["k"] = b"value"
    assert CacheStore(fake_redis).get("k") == "value"


def test_delete_by_prefix_only_touches_namespace(fake_redis):
    cache = CacheStore(fake_redis, scan_count=2)
    for i in range(5):
        cache.set(record_list_key(f"digest{i}"), "[]", 60)
    cache.set(record_key(1), "{}", 60)

    removed = cache.delete_by_prefix(record_list_prefix())

    assert removed == 5
    assert list(fake_redis.data) == ["record:1"]


def test_failures_degrade_silently(cache, fake_redis, caplog):
    fake_redis.down = True

    with caplog.at_level(logging.WARNING, logger="roster_system.cache.store"):
        assert cache.get("record:1") is None
        cache.set("record:1", "{}", 60)
        cache.delete("record:1")
        assert cache.delete_by_prefix("record-list:") == 0
        assert cache.exists("record:1") is False
        assert cache.ping() is False

    assert "cache get failed" in caplog.text
    assert fake_redis.data == {}


def test_keys():
    assert record_key(12) == "record:12"
    assert record_list_key("abc") == "record-list:abc"
    assert record_list_key("abc").startswith(record_list_prefix())
