from __future__ import annotations

from ..core.constants import RECORD_LIST_NAMESPACE, RECORD_NAMESPACE


def record_key(record_id: int) -> str:
    return f"{RECORD_NAMESPACE}:{int(record_id)}"


def record_list_key(digest: str) -> str:
    return f"{RECORD_LIST_NAMESPACE}:{digest}"


def record_list_prefix() -> str:
    return f"{RECORD_LIST_NAMESPACE}:"
