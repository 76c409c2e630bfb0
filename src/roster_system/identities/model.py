from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..common.datetime_utils import isoformat
from ..core.enums import Role


@dataclass(frozen=True)
class IdentityRecord:
    """Domain entity: a login identity.

    ``password_hash`` never leaves the identities package.
    """

    identity_id: int
    email: str
    password_hash: str
    first_name: str
    last_name: str
    role: Role
    is_active: bool = True
    person_id: Optional[int] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Principal:
    """Verified caller payload handed to the core by the authentication boundary."""

    identity_id: int
    email: str
    role: Role
    person_ref: Optional[int] = None


def full_name(identity: IdentityRecord) -> str:
    return f"{identity.first_name} {identity.last_name}".strip()


def creator_view(identity: IdentityRecord) -> dict[str, Any]:
    """Public projection used when expanding a record's creator."""

    return {
        "id": identity.identity_id,
        "email": identity.email,
        "first_name": identity.first_name,
        "last_name": identity.last_name,
        "full_name": full_name(identity),
        "role": identity.role.value,
    }


def identity_view(identity: IdentityRecord) -> dict[str, Any]:
    return {
        **creator_view(identity),
        "is_active": identity.is_active,
        "person_id": identity.person_id,
        "last_login": isoformat(identity.last_login),
        "created_at": isoformat(identity.created_at),
    }
