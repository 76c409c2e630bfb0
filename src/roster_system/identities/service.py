from __future__ import annotations

import logging
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..common.datetime_utils import now_utc
from ..common.validators import require_email, require_min_length, require_non_empty
from ..core.constants import MIN_PASSWORD_LENGTH
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, DuplicateKeyError, NotFoundError, ValidationError
from ..records.repository import PersonRepository
from .model import IdentityRecord, Principal
from .repository import IdentityRepository

logger = logging.getLogger(__name__)


def principal_for(identity: IdentityRecord) -> Principal:
    return Principal(
        identity_id=identity.identity_id,
        email=identity.email,
        role=identity.role,
        person_ref=identity.person_id,
    )


class AuthService:
    """Use cases: register, authenticate (login), resolve the current identity."""

    def __init__(self, identities: IdentityRepository, persons: Optional[PersonRepository] = None):
        self._identities = identities
        self._persons = persons

    def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: Role = Role.MEMBER,
        person_id: Optional[int] = None,
    ) -> IdentityRecord:
        email = require_email(email)
        first_name = require_non_empty(first_name, "First name")
        last_name = require_non_empty(last_name, "Last name")
        require_min_length(password, "Password", MIN_PASSWORD_LENGTH)

        if role == Role.ADMIN:
            raise ValidationError("Admin identities cannot be registered")

        if self._identities.get_by_email(email):
            raise DuplicateKeyError("User with this email already exists")

        if person_id is not None:
            if self._persons is None or self._persons.find_by_id(int(person_id)) is None:
                raise NotFoundError("Record not found")

        identity_id = self._identities.create_identity(
            email=email,
            password_hash=generate_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            person_id=int(person_id) if person_id is not None else None,
        )
        identity = self._identities.get_by_id(identity_id)
        if identity is None:
            raise NotFoundError("User not found")
        logger.info("Registered identity %s (%s)", identity.identity_id, identity.role.value)
        return identity

    def authenticate(self, email: str, password: str) -> IdentityRecord:
        identity = self._identities.get_by_email((email or "").strip().lower())
        if not identity or not identity.is_active:
            raise AuthenticationError("Invalid email or password")

        try:
            ok = check_password_hash(identity.password_hash, password or "")
        except ValueError:
            # e.g. placeholder or corrupted hashes
            ok = False

        if not ok:
            raise AuthenticationError("Invalid email or password")

        self._identities.touch_last_login(identity.identity_id, at=now_utc())
        return self._identities.get_by_id(identity.identity_id) or identity

    def current_identity(self, identity_id: int) -> IdentityRecord:
        identity = self._identities.get_by_id(int(identity_id))
        if not identity or not identity.is_active:
            raise AuthenticationError("User not found or inactive")
        return identity
