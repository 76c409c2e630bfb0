from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

import mysql.connector
from mysql.connector import pooling

logger = logging.getLogger(__name__)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    pool_size: int = 5

    @classmethod
    def from_dict(cls, db_config: dict, *, pool_size: int = 5) -> "DBConfig":
        return cls(
            host=str(db_config.get("host", "localhost")),
            port=int(db_config.get("port", 3306)),
            user=str(db_config.get("user", "root")),
            password=str(db_config.get("password", "")),
            database=str(db_config.get("database", "roster_db")),
            pool_size=int(pool_size),
        )


class DatabaseConnection:
    """Process-wide pooled connection factory.

    The pool is opened lazily on first use and shared by every request.
    ``pool_size`` is a hard ceiling: callers beyond it wait for a
    connection to be returned instead of failing.
    """

    def __init__(self, config: DBConfig):
        self._config = config
        self._pool: Optional[pooling.MySQLConnectionPool] = None
        self._pool_guard = threading.Lock()
        self._slots = threading.BoundedSemaphore(max(1, int(config.pool_size)))

    @property
    def config(self) -> DBConfig:
        return self._config

    def _get_pool(self) -> pooling.MySQLConnectionPool:
        if self._pool is None:
            with self._pool_guard:
                if self._pool is None:
                    logger.info(
                        "Opening MySQL pool %s@%s:%s/%s (size=%s)",
                        self._config.user,
                        self._config.host,
                        self._config.port,
                        self._config.database,
                        self._config.pool_size,
                    )
                    self._pool = pooling.MySQLConnectionPool(
                        pool_name="roster_pool",
                        pool_size=max(1, int(self._config.pool_size)),
                        host=self._config.host,
                        port=int(self._config.port),
                        user=self._config.user,
                        password=self._config.password,
                        database=self._config.database,
                        autocommit=False,
                    )
        return self._pool

    def acquire(self):
        self._slots.acquire()
        try:
            return self._get_pool().get_connection()
        except Exception:
            self._slots.release()
            raise

    def release(self, conn) -> None:
        try:
            conn.close()
        finally:
            self._slots.release()

    def connect_raw(self, *, with_database: bool = True):
        """Unpooled connection for schema bootstrap."""
        kwargs = dict(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
        )
        if with_database:
            kwargs["database"] = self._config.database
        return mysql.connector.connect(**kwargs)
