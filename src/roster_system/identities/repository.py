from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import Role
from .model import IdentityRecord


class IdentityRepository(Protocol):
    def get_by_id(self, identity_id: int) -> Optional[IdentityRecord]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[IdentityRecord]:
        raise NotImplementedError

    def find_by_ids(self, identity_ids: Iterable[int]) -> Sequence[IdentityRecord]:
        raise NotImplementedError

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
        raise NotImplementedError

    def touch_last_login(self, identity_id: int, *, at: datetime) -> None:
        raise NotImplementedError
