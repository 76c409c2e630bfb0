from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import DuplicateKeyError, StoreError, StoreUnavailableError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

# Client-side error numbers (CR_*) mean the server could not be reached.
_CLIENT_ERRNO_RANGE = range(2000, 3000)


def translate_error(exc: mysql.connector.Error) -> Exception:
    """Map a driver error to the domain taxonomy.

    Driver messages are logged, never carried into the domain error.
    """

    errno = getattr(exc, "errno", None)
    if isinstance(exc, mysql.connector.IntegrityError) and errno == errorcode.ER_DUP_ENTRY:
        return DuplicateKeyError("A record with this value already exists")
    if isinstance(exc, (mysql.connector.InterfaceError, mysql.connector.OperationalError, mysql.connector.PoolError)):
        return StoreUnavailableError("Record store is unavailable")
    if errno is not None and errno in _CLIENT_ERRNO_RANGE:
        return StoreUnavailableError("Record store is unavailable")
    return StoreError("Internal server error")


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True) -> Iterator[tuple[Any, Any]]:
    try:
        conn = conn_factory.acquire()
    except mysql.connector.Error as exc:
        logger.error("Could not acquire MySQL connection: %s", exc)
        raise translate_error(exc) from exc

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        _rollback(conn)
        logger.error("MySQL error (errno=%s): %s", getattr(exc, "errno", None), exc)
        raise translate_error(exc) from exc
    except Exception:
        _rollback(conn)
        raise
    finally:
        conn_factory.release(conn)


def _rollback(conn) -> None:
    try:
        conn.rollback()
    except mysql.connector.Error as exc:
        logger.warning("Rollback failed: %s", exc)


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def placeholders(count: int) -> str:
    return ", ".join(["%s"] * count)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
