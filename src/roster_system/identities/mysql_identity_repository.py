from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders
from .model import IdentityRecord
from .repository import IdentityRepository

_COLUMNS = """
    identity_id, email, password_hash, first_name, last_name, role,
    is_active, person_id, last_login, created_at
"""


def _to_identity(row: Dict[str, Any]) -> IdentityRecord:
    return IdentityRecord(
        identity_id=int(row["identity_id"]),
        email=row["email"],
        password_hash=row["password_hash"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        role=Role(row["role"]),
        is_active=bool(row.get("is_active", True)),
        person_id=int(row["person_id"]) if row.get("person_id") is not None else None,
        last_login=row.get("last_login"),
        created_at=row.get("created_at"),
    )


class MySQLIdentityRepository(IdentityRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, identity_id: int) -> Optional[IdentityRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM identities WHERE identity_id=%s", (int(identity_id),))
            row = fetchone(cur)
            return _to_identity(row) if row else None

    def get_by_email(self, email: str) -> Optional[IdentityRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM identities WHERE email=%s", (email.strip().lower(),))
            row = fetchone(cur)
            return _to_identity(row) if row else None

    def find_by_ids(self, identity_ids: Iterable[int]) -> Sequence[IdentityRecord]:
        ids = sorted({int(i) for i in identity_ids})
        if not ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM identities WHERE identity_id IN ({placeholders(len(ids))})",
                tuple(ids),
            )
            return [_to_identity(r) for r in fetchall(cur)]

    def create_identity(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        role: Role,
        person_id: Optional[int] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO identities (email, password_hash, first_name, last_name, role, is_active, person_id)
                VALUES (%s, %s, %s, %s, %s, 1, %s)
                """,
                (email, password_hash, first_name, last_name, role.value, person_id),
            )
            return int(cur.lastrowid)

    def touch_last_login(self, identity_id: int, *, at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE identities SET last_login=%s WHERE identity_id=%s", (at, int(identity_id)))
