"""Access policy gate and role administration."""
import uuid
from types import SimpleNamespace

import pytest

from cbo.core.exceptions import Unauthorized, ValidationError
from cbo.models.role import AppRole
from cbo.services.rbac import (
    Actor,
    Operation,
    assign_role,
    authorize,
    build_actor,
    ensure_authorized,
    get_user_roles,
    revoke_role,
)


def actor(*roles):
    return Actor(user_id=uuid.uuid4(), roles=frozenset(roles))


class TestAuthorize:
    def test_anonymous_is_denied_everything(self):
        for operation in Operation:
            assert authorize(None, operation) is False

    def test_any_authenticated_actor_may_read(self):
        member = actor(AppRole.MEMBER)
        for operation in (Operation.READ_MEMBER, Operation.READ_LOAN, Operation.READ_SAVINGS, Operation.READ_REPORTS):
            assert authorize(member, operation)

    def test_loan_payments_are_staff_only(self):
        member = actor(AppRole.MEMBER)
        own_loan = SimpleNamespace(user_id=member.user_id)
        assert authorize(member, Operation.RECORD_LOAN_PAYMENT, own_loan) is False
        assert authorize(actor(AppRole.TREASURER), Operation.RECORD_LOAN_PAYMENT)
        assert authorize(actor(AppRole.ADMIN), Operation.RECORD_LOAN_PAYMENT)

    def test_savings_insert_is_owner_or_staff(self):
        member = actor(AppRole.MEMBER)
        own = SimpleNamespace(user_id=member.user_id)
        someone_else = SimpleNamespace(user_id=uuid.uuid4())

        assert authorize(member, Operation.RECORD_SAVINGS, own)
        assert not authorize(member, Operation.RECORD_SAVINGS, someone_else)
        assert not authorize(member, Operation.RECORD_SAVINGS)
        assert authorize(actor(AppRole.TREASURER), Operation.RECORD_SAVINGS, someone_else)

    def test_savings_corrections_are_staff_only(self):
        member = actor(AppRole.MEMBER)
        assert not authorize(member, Operation.UPDATE_SAVINGS)
        assert not authorize(member, Operation.DELETE_SAVINGS)
        assert authorize(actor(AppRole.TREASURER), Operation.DELETE_SAVINGS)

    def test_member_record_only_for_oneself(self):
        member = actor(AppRole.MEMBER)
        assert authorize(member, Operation.CREATE_MEMBER, member.user_id)
        assert not authorize(member, Operation.CREATE_MEMBER, uuid.uuid4())
        assert not authorize(actor(AppRole.ADMIN), Operation.CREATE_MEMBER, uuid.uuid4())

    def test_role_changes_admin_only_and_never_self(self):
        admin = actor(AppRole.ADMIN)
        assert authorize(admin, Operation.ASSIGN_ROLE, uuid.uuid4())
        assert not authorize(admin, Operation.ASSIGN_ROLE, admin.user_id)
        assert not authorize(actor(AppRole.TREASURER), Operation.ASSIGN_ROLE, uuid.uuid4())

    def test_no_roles_means_no_staff_rights(self):
        nobody = actor()
        assert not authorize(nobody, Operation.MANAGE_LOAN)
        assert authorize(nobody, Operation.READ_LOAN)

    def test_ensure_authorized_raises(self):
        with pytest.raises(Unauthorized) as excinfo:
            ensure_authorized(actor(AppRole.MEMBER), Operation.MANAGE_LOAN)
        assert excinfo.value.operation == Operation.MANAGE_LOAN


class TestRoleAdministration:
    def test_build_actor_reads_user_role_table(self, db, make_user):
        user = make_user(AppRole.TREASURER)
        built = build_actor(db, user.id)

        assert built.roles == frozenset({AppRole.MEMBER, AppRole.TREASURER})
        assert built.is_staff and not built.is_admin
        assert built.member_id == user.member.id

    def test_admin_assigns_and_revokes(self, db, admin, make_user):
        user = make_user()

        assign_role(db, admin, user.id, AppRole.TREASURER)
        assert set(get_user_roles(user.id, db)) == {AppRole.MEMBER, AppRole.TREASURER}

        revoke_role(db, admin, user.id, AppRole.TREASURER)
        assert get_user_roles(user.id, db) == [AppRole.MEMBER]

    def test_assign_is_idempotent(self, db, admin, make_user):
        user = make_user()
        first = assign_role(db, admin, user.id, AppRole.TREASURER)
        second = assign_role(db, admin, user.id, AppRole.TREASURER)
        assert first.id == second.id

    def test_admin_cannot_edit_own_roles(self, db, admin):
        with pytest.raises(Unauthorized):
            revoke_role(db, admin, admin.user_id, AppRole.ADMIN)
        assert AppRole.ADMIN in get_user_roles(admin.user_id, db)

    def test_treasurer_cannot_assign(self, db, treasurer, make_user):
        user = make_user()
        with pytest.raises(Unauthorized):
            assign_role(db, treasurer, user.id, AppRole.ADMIN)

    def test_revoke_missing_role(self, db, admin, make_user):
        user = make_user()
        with pytest.raises(ValidationError):
            revoke_role(db, admin, user.id, AppRole.TREASURER)
