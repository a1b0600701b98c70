"""Role membership and the access policy gate.

Roles are read from the user_role table only. Every mutating service
operation calls ``ensure_authorized`` before touching the database, so the
rules hold no matter which client calls in.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from cbo.core.exceptions import NotFound, Unauthorized, ValidationError
from cbo.db.base import unit_of_work
from cbo.models.member import Member
from cbo.models.role import AppRole, UserRole
from cbo.models.user import User

logger = logging.getLogger(__name__)


class Operation(str, enum.Enum):
    """Operations guarded by the gate."""
    READ_MEMBER = "read_member"
    READ_LOAN = "read_loan"
    READ_LOAN_PAYMENT = "read_loan_payment"
    READ_SAVINGS = "read_savings"
    READ_REPORTS = "read_reports"
    CREATE_MEMBER = "create_member"
    UPDATE_MEMBER = "update_member"
    RECORD_SAVINGS = "record_savings"
    UPDATE_SAVINGS = "update_savings"
    DELETE_SAVINGS = "delete_savings"
    APPLY_FOR_LOAN = "apply_for_loan"
    MANAGE_LOAN = "manage_loan"
    RECORD_LOAN_PAYMENT = "record_loan_payment"
    UPDATE_LOAN_PAYMENT = "update_loan_payment"
    DELETE_LOAN_PAYMENT = "delete_loan_payment"
    ASSIGN_ROLE = "assign_role"


STAFF_ROLES = frozenset({AppRole.ADMIN, AppRole.TREASURER})

# Any authenticated actor.
READ_OPERATIONS = frozenset({
    Operation.READ_MEMBER,
    Operation.READ_LOAN,
    Operation.READ_LOAN_PAYMENT,
    Operation.READ_SAVINGS,
    Operation.READ_REPORTS,
})

# Admin or treasurer, regardless of ownership.
STAFF_OPERATIONS = frozenset({
    Operation.UPDATE_MEMBER,
    Operation.UPDATE_SAVINGS,
    Operation.DELETE_SAVINGS,
    Operation.MANAGE_LOAN,
    Operation.RECORD_LOAN_PAYMENT,
    Operation.UPDATE_LOAN_PAYMENT,
    Operation.DELETE_LOAN_PAYMENT,
})

# The target's owner, or staff on anyone's behalf.
OWNER_OR_STAFF_OPERATIONS = frozenset({
    Operation.RECORD_SAVINGS,
    Operation.APPLY_FOR_LOAN,
})


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as seen by the gate."""
    user_id: UUID
    roles: FrozenSet[AppRole] = field(default_factory=frozenset)
    member_id: Optional[UUID] = None

    def has_role(self, role: AppRole) -> bool:
        return role in self.roles

    @property
    def is_staff(self) -> bool:
        return bool(self.roles & STAFF_ROLES)

    @property
    def is_admin(self) -> bool:
        return AppRole.ADMIN in self.roles


def _owner_user_id(target) -> Optional[UUID]:
    """User id that owns ``target`` (a Member, a user id, or anything with user_id)."""
    if target is None:
        return None
    if isinstance(target, UUID):
        return target
    return getattr(target, "user_id", None)


def authorize(actor: Optional[Actor], operation: Operation, target=None) -> bool:
    """Decide whether ``actor`` may perform ``operation`` on ``target``."""
    if actor is None:
        return False

    if operation in READ_OPERATIONS:
        return True

    if operation in STAFF_OPERATIONS:
        return actor.is_staff

    if operation in OWNER_OR_STAFF_OPERATIONS:
        if actor.is_staff:
            return True
        owner = _owner_user_id(target)
        return owner is not None and owner == actor.user_id

    if operation == Operation.CREATE_MEMBER:
        # Members are only created for oneself, at registration.
        owner = _owner_user_id(target)
        return owner is not None and owner == actor.user_id

    if operation == Operation.ASSIGN_ROLE:
        # Nobody edits their own roles; only admins edit anyone else's.
        owner = _owner_user_id(target)
        return actor.is_admin and owner is not None and owner != actor.user_id

    return False


def ensure_authorized(actor: Optional[Actor], operation: Operation, target=None) -> None:
    """Raise Unauthorized unless ``authorize`` allows the call."""
    if not authorize(actor, operation, target):
        who = actor.user_id if actor else "anonymous"
        logger.warning(f"Denied {operation.value} for {who}")
        raise Unauthorized(f"Not permitted to {operation.value.replace('_', ' ')}", operation=operation)


def get_user_roles(user_id: UUID, db: Session) -> List[AppRole]:
    """Get all role memberships for a user."""
    rows = db.query(UserRole.role).filter(UserRole.user_id == user_id).all()
    return [AppRole(row[0]) for row in rows]


def build_actor(db: Session, user_id: UUID) -> Actor:
    """Load an Actor (roles and own member id) for an existing user."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    member = db.query(Member.id).filter(Member.user_id == user_id).first()
    return Actor(
        user_id=user.id,
        roles=frozenset(get_user_roles(user.id, db)),
        member_id=member[0] if member else None,
    )


def grant_role_unchecked(
    db: Session,
    user_id: UUID,
    role: AppRole,
    assigned_by: UUID = None
) -> UserRole:
    """Add a role membership without consulting the gate. Does not commit.

    Used by signup (default member role) and bootstrap scripts only.
    """
    role = AppRole(role)
    existing = db.query(UserRole).filter(
        UserRole.user_id == user_id,
        UserRole.role == role
    ).first()
    if existing:
        return existing

    user_role = UserRole(
        user_id=user_id,
        role=role,
        assigned_by=assigned_by,
    )
    db.add(user_role)
    db.flush()
    return user_role


def assign_role(
    db: Session,
    actor: Actor,
    user_id: UUID,
    role: AppRole,
) -> UserRole:
    """Give a user a role (admin only, never oneself)."""
    ensure_authorized(actor, Operation.ASSIGN_ROLE, user_id)
    role = AppRole(role)

    with unit_of_work(db):
        if not db.query(User.id).filter(User.id == user_id).first():
            raise NotFound("User not found")
        user_role = grant_role_unchecked(db, user_id, role, assigned_by=actor.user_id)

    db.refresh(user_role)
    logger.info(f"Role {role.value} assigned to {user_id} by {actor.user_id}")
    return user_role


def revoke_role(
    db: Session,
    actor: Actor,
    user_id: UUID,
    role: AppRole,
) -> None:
    """Remove a role membership (admin only, never oneself)."""
    ensure_authorized(actor, Operation.ASSIGN_ROLE, user_id)
    role = AppRole(role)

    with unit_of_work(db):
        user_role = db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role == role
        ).first()
        if not user_role:
            raise ValidationError(f"User does not have role '{role.value}'")
        db.delete(user_role)

    logger.info(f"Role {role.value} revoked from {user_id} by {actor.user_id}")
