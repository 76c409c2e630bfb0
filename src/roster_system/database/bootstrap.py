from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from werkzeug.security import generate_password_hash

from ..core.enums import Role
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema files (handles ';' inside quotes).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
            buf.append(ch)
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
            buf.append(ch)
            continue

        if ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def ensure_database_exists(conn_factory: DatabaseConnection) -> None:
    database = conn_factory.config.database
    conn = conn_factory.connect_raw(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(conn_factory: DatabaseConnection, *, schema_path: Optional[Path] = None) -> None:
    ensure_database_exists(conn_factory)
    sql = _strip_create_db_and_use(Path(schema_path or SCHEMA_PATH).read_text(encoding="utf-8"))

    conn = conn_factory.connect_raw()
    try:
        cur = conn.cursor()
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("Schema applied to %s", conn_factory.config.database)


def ensure_admin_identity(
    conn_factory: DatabaseConnection,
    *,
    email: str,
    password: str,
    first_name: str = "Admin",
    last_name: str = "User",
) -> None:
    """Create (or re-activate) the bootstrap admin identity."""

    if not email or not password:
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin bootstrap")
        return

    email = email.strip().lower()
    conn = conn_factory.connect_raw()
    try:
        cur = conn.cursor(dictionary=True)
        cur.execute("SELECT identity_id FROM identities WHERE email=%s", (email,))
        existing = cur.fetchone()
        password_hash = generate_password_hash(password)
        if existing:
            cur.execute(
                """
                UPDATE identities
                SET password_hash=%s, role=%s, is_active=1
                WHERE identity_id=%s
                """,
                (password_hash, Role.ADMIN.value, existing["identity_id"]),
            )
        else:
            cur.execute(
                """
                INSERT INTO identities (email, password_hash, first_name, last_name, role, is_active)
                VALUES (%s, %s, %s, %s, %s, 1)
                """,
                (email, password_hash, first_name, last_name, Role.ADMIN.value),
            )
        conn.commit()
    finally:
        conn.close()
    logger.info("Admin identity ready: %s", email)


def list_tables(conn_factory: DatabaseConnection) -> list[str]:
    conn = conn_factory.connect_raw()
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
