from __future__ import annotations

import pytest

from roster_system.authz.guard import AdminPolicy, AuthorizationGuard, MemberPolicy
from roster_system.core.enums import Role
from roster_system.core.exceptions import AuthenticationError, AuthorizationError
from roster_system.identities.model import Principal
from roster_system.records.query import FilterSpec

ADMIN = Principal(identity_id=1, email="admin@example.com", role=Role.ADMIN)
MEMBER = Principal(identity_id=2, email="member@example.com", role=Role.MEMBER, person_ref=7)


def test_no_principal_is_unauthenticated():
    with pytest.raises(AuthenticationError):
        AuthorizationGuard().policy_for(None)


def test_policy_by_role():
    guard = AuthorizationGuard()
    assert isinstance(guard.policy_for(ADMIN), AdminPolicy)
    assert isinstance(guard.policy_for(MEMBER), MemberPolicy)


def test_admin_is_unrestricted():
    policy = AuthorizationGuard().policy_for(ADMIN)
    spec = FilterSpec(name="x")

    assert policy.scope_list(spec) is spec
    policy.check_read(99)
    policy.check_update(99, ["age", "email"])
    policy.check_delete(99)
    policy.check_bulk_update()
    policy.check_stats()


def test_member_list_is_scoped_to_own_record():
    scoped = AuthorizationGuard().policy_for(MEMBER).scope_list(FilterSpec(name="x", record_ids=(1, 2)))
    assert scoped.record_ids == (7,)
    assert scoped.name == "x"


def test_member_ownership():
    policy = AuthorizationGuard().policy_for(MEMBER)
    policy.check_read(7)
    policy.check_attendance(7)
    with pytest.raises(AuthorizationError):
        policy.check_read(8)
    with pytest.raises(AuthorizationError):
        policy.check_attendance(8)


def test_member_field_restriction():
    policy = AuthorizationGuard().policy_for(MEMBER)
    policy.check_update(7, ["subjects", "class_name"])

    with pytest.raises(AuthorizationError) as err:
        policy.check_update(7, ["subjects", "age"])
    assert err.value.message == "Members can only update: subjects, class_name"

    with pytest.raises(AuthorizationError):
        policy.check_update(8, ["subjects"])


@pytest.mark.parametrize("check", ["check_create", "check_bulk_update", "check_search", "check_stats"])
def test_member_admin_only_operations(check):
    with pytest.raises(AuthorizationError):
        getattr(AuthorizationGuard().policy_for(MEMBER), check)()
