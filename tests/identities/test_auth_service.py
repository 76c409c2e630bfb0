from __future__ import annotations

import pytest
from werkzeug.security import check_password_hash

from roster_system.core.enums import Role
from roster_system.core.exceptions import (
    AuthenticationError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def auth(container):
    return container.auth_service


def _register(auth, **extra):
    data = {
        "email": "Ann@Example.com",
        "password": "secret1",
        "first_name": "Ann",
        "last_name": "Lee",
    }
    data.update(extra)
    return auth.register(**data)


def test_register_creates_member_with_hashed_password(auth):
    identity = _register(auth)

    assert identity.email == "ann@example.com"
    assert identity.role == Role.MEMBER
    assert identity.password_hash != "secret1"
    assert check_password_hash(identity.password_hash, "secret1")


def test_register_rejects_duplicates_and_admins(auth):
    _register(auth)
    with pytest.raises(DuplicateKeyError):
        _register(auth, email="ann@example.com")
    with pytest.raises(ValidationError):
        _register(auth, email="boss@example.com", role=Role.ADMIN)


def test_register_validates_input(auth):
    with pytest.raises(ValidationError):
        _register(auth, password="123")
    with pytest.raises(ValidationError):
        _register(auth, email="nope")


def test_register_with_unknown_person_link(auth):
    with pytest.raises(NotFoundError):
        _register(auth, person_id=404)


def test_authenticate(auth, identities):
    registered = _register(auth)

    identity = auth.authenticate(" ANN@example.com ", "secret1")

    assert identity.identity_id == registered.identity_id
    assert identity.last_login is not None


def test_authenticate_failures_share_one_message(auth, identities):
    registered = _register(auth)

    with pytest.raises(AuthenticationError) as wrong_password:
        auth.authenticate("ann@example.com", "wrong")
    with pytest.raises(AuthenticationError) as unknown:
        auth.authenticate("who@example.com", "secret1")
    assert wrong_password.value.message == unknown.value.message == "Invalid email or password"

    identities.deactivate(registered.identity_id)
    with pytest.raises(AuthenticationError):
        auth.authenticate("ann@example.com", "secret1")


def test_corrupt_hash_counts_as_mismatch(auth, identities):
    identities.add(email="legacy@example.com", password_hash="not-a-hash")
    with pytest.raises(AuthenticationError):
        auth.authenticate("legacy@example.com", "anything")
