from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from ..core.constants import MEMBER_UPDATABLE_FIELDS
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError
from ..identities.model import Principal
from ..records.query import FilterSpec

logger = logging.getLogger(__name__)


class AccessPolicy(ABC):
    """What one caller may do with roster records.

    Every ``check_*`` either returns normally or raises AuthorizationError.
    Checks run before any store access that could leak or mutate data.
    """

    def __init__(self, principal: Principal):
        self.principal = principal

    @abstractmethod
    def scope_list(self, filter_spec: FilterSpec) -> FilterSpec:
        raise NotImplementedError

    @abstractmethod
    def check_read(self, record_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def check_update(self, record_id: int, fields: Iterable[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def check_attendance(self, record_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def check_create(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def check_delete(self, record_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def check_bulk_update(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def check_search(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def check_stats(self) -> None:
        raise NotImplementedError


class AdminPolicy(AccessPolicy):
    """Unrestricted access."""

    def scope_list(self, filter_spec: FilterSpec) -> FilterSpec:
        return filter_spec

    def check_read(self, record_id: int) -> None:
        return None

    def check_update(self, record_id: int, fields: Iterable[str]) -> None:
        return None

    def check_attendance(self, record_id: int) -> None:
        return None

    def check_create(self) -> None:
        return None

    def check_delete(self, record_id: int) -> None:
        return None

    def check_bulk_update(self) -> None:
        return None

    def check_search(self) -> None:
        return None

    def check_stats(self) -> None:
        return None


class MemberPolicy(AccessPolicy):
    """Own record only; updates limited to MEMBER_UPDATABLE_FIELDS."""

    allowed_fields = MEMBER_UPDATABLE_FIELDS

    def _own_record(self) -> int:
        if self.principal.person_ref is None:
            raise AuthorizationError("No roster record is linked to this account")
        return int(self.principal.person_ref)

    def _require_owner(self, record_id: int) -> None:
        if int(record_id) != self._own_record():
            raise AuthorizationError("Not authorized to access this record")

    def _admin_only(self) -> None:
        raise AuthorizationError("Admin access required")

    def scope_list(self, filter_spec: FilterSpec) -> FilterSpec:
        return replace(filter_spec, record_ids=(self._own_record(),))

    def check_read(self, record_id: int) -> None:
        self._require_owner(record_id)

    def check_update(self, record_id: int, fields: Iterable[str]) -> None:
        self._require_owner(record_id)
        restricted = sorted(f for f in fields if f not in self.allowed_fields)
        if restricted:
            raise AuthorizationError(f"Members can only update: {', '.join(self.allowed_fields)}")

    def check_attendance(self, record_id: int) -> None:
        self._require_owner(record_id)

    def check_create(self) -> None:
        self._admin_only()

    def check_delete(self, record_id: int) -> None:
        self._admin_only()

    def check_bulk_update(self) -> None:
        self._admin_only()

    def check_search(self) -> None:
        self._admin_only()

    def check_stats(self) -> None:
        self._admin_only()


@dataclass(frozen=True)
class AuthorizationGuard:
    """Picks the access policy for a caller.

    Unauthenticated -> Authenticated -> {Authorized, Forbidden}; failures
    are final for the request.
    """

    def policy_for(self, principal: Optional[Principal]) -> AccessPolicy:
        if principal is None:
            raise AuthenticationError("Not authenticated")
        if principal.role == Role.ADMIN:
            return AdminPolicy(principal)
        if principal.role == Role.MEMBER:
            return MemberPolicy(principal)
        logger.warning("Unknown role %r for identity %s", principal.role, principal.identity_id)
        raise AuthorizationError("Insufficient permissions")
