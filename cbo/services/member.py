import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from cbo.core.exceptions import NotFound, ValidationError
from cbo.db.base import unit_of_work
from cbo.models.member import Member, MemberStatus, MemberStatusHistory
from cbo.models.transaction import SavingsTransaction
from cbo.models.user import User
from cbo.services.ledger import final_balance, running_balance, to_money
from cbo.services.rbac import Actor, Operation, ensure_authorized
from cbo.services.sequence import next_member_number

logger = logging.getLogger(__name__)

# Fields staff may edit through update_member.
EDITABLE_FIELDS = ("full_name", "phone", "national_id", "address", "monthly_savings_target")


@dataclass
class MemberStatement:
    member: Member
    lines: List[Tuple[SavingsTransaction, Decimal]]
    closing_balance: Decimal


def get_member(db: Session, actor: Actor, member_id: UUID) -> Member:
    ensure_authorized(actor, Operation.READ_MEMBER)
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise NotFound("Member not found")
    return member


def get_member_by_user_id(
    db: Session,
    user_id: UUID
) -> Optional[Member]:
    """Get member record by user ID."""
    return db.query(Member).filter(Member.user_id == user_id).first()


def list_members(db: Session, actor: Actor, status: Optional[MemberStatus] = None) -> List[Member]:
    ensure_authorized(actor, Operation.READ_MEMBER)
    query = db.query(Member)
    if status is not None:
        query = query.filter(Member.status == MemberStatus(status))
    return query.order_by(Member.member_number.asc()).all()


def add_member(
    db: Session,
    actor: Actor,
    user_id: UUID,
    full_name: str,
    phone: str = None,
) -> Member:
    """Insert the member record for a user without committing.

    For callers that already hold a ``unit_of_work`` (signup). The number is
    allocated from the counter row in the same transaction as the insert.
    """
    ensure_authorized(actor, Operation.CREATE_MEMBER, user_id)

    if not full_name or not full_name.strip():
        raise ValidationError("Full name is required")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")

    if get_member_by_user_id(db, user_id):
        raise ValidationError("A member record already exists for this user")

    member = Member(
        member_number=next_member_number(db),
        user_id=user_id,
        full_name=full_name.strip(),
        phone=phone,
        status=MemberStatus.ACTIVE,
        total_savings=Decimal("0.00"),
        total_loans=Decimal("0.00"),
    )
    db.add(member)
    db.flush()
    return member


def register_member(
    db: Session,
    actor: Actor,
    user_id: UUID,
    full_name: str,
    phone: str = None,
) -> Member:
    """Create and commit the member record for a user, allocating the next member number."""
    with unit_of_work(db):
        member = add_member(db, actor, user_id, full_name, phone=phone)

    db.refresh(member)
    logger.info(f"Registered member {member.member_number} for user {user_id}")
    return member


def update_member(
    db: Session,
    actor: Actor,
    member_id: UUID,
    **changes
) -> Member:
    """Update a member's profile fields (staff only). Derived totals are not editable."""
    ensure_authorized(actor, Operation.UPDATE_MEMBER)

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    if "full_name" in changes and (not changes["full_name"] or not changes["full_name"].strip()):
        raise ValidationError("Full name is required")
    if "monthly_savings_target" in changes:
        target = changes["monthly_savings_target"]
        if target is None or Decimal(str(target)) < 0:
            raise ValidationError("Monthly savings target cannot be negative")
        changes["monthly_savings_target"] = to_money(target)

    with unit_of_work(db):
        member = db.query(Member).filter(Member.id == member_id).with_for_update().first()
        if not member:
            raise NotFound("Member not found")
        for key, value in changes.items():
            setattr(member, key, value)

    db.refresh(member)
    logger.info(f"Member {member.member_number} updated by {actor.user_id}: {sorted(changes)}")
    return member


def change_member_status(
    db: Session,
    actor: Actor,
    member_id: UUID,
    new_status: MemberStatus,
    reason: str = None
) -> Member:
    """Set a member's status and record the change in status history."""
    ensure_authorized(actor, Operation.UPDATE_MEMBER)
    new_status = MemberStatus(new_status)

    with unit_of_work(db):
        member = db.query(Member).filter(Member.id == member_id).with_for_update().first()
        if not member:
            raise NotFound("Member not found")

        old_status = member.status
        if old_status == new_status:
            return member

        member.status = new_status

        # Create status history record
        status_history = MemberStatusHistory(
            member_id=member.id,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor.user_id,
            reason=reason
        )
        db.add(status_history)

    db.refresh(member)
    logger.info(f"Member {member.member_number} status {old_status.value} -> {new_status.value}")
    return member


def get_member_statement(db: Session, actor: Actor, member_id: UUID) -> MemberStatement:
    """Member's savings history in replay order with the running balance after each line."""
    ensure_authorized(actor, Operation.READ_SAVINGS)
    member = get_member(db, actor, member_id)
    transactions = db.query(SavingsTransaction).filter(
        SavingsTransaction.member_id == member_id
    ).all()
    lines = running_balance(transactions)
    return MemberStatement(member=member, lines=lines, closing_balance=final_balance(lines))
