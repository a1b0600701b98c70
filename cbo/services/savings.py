import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from cbo.core.config import settings
from cbo.core.exceptions import NotFound, ValidationError
from cbo.db.base import unit_of_work
from cbo.models.member import Member, MemberStatus
from cbo.models.transaction import SavingsTransaction, TransactionType
from cbo.services.aggregation import lock_member, recompute_member_savings
from cbo.services.ledger import ZERO, to_money
from cbo.services.rbac import Actor, Operation, ensure_authorized

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("amount", "transaction_type", "transaction_date", "description", "receipt_number")


def _validate_amount(amount) -> Decimal:
    if amount is None or to_money(amount) <= ZERO:
        raise ValidationError("Amount must be greater than 0")
    return to_money(amount)


def _validate_type(transaction_type) -> TransactionType:
    try:
        return TransactionType(transaction_type)
    except ValueError:
        raise ValidationError(f"Unknown transaction type: {transaction_type}")


def _ensure_not_overdrawn(member: Member) -> None:
    """Reject a history whose replayed balance ends below zero."""
    if settings.ALLOW_NEGATIVE_SAVINGS:
        return
    if to_money(member.total_savings) < ZERO:
        raise ValidationError(
            f"Insufficient savings: balance would be {member.total_savings} for member {member.member_number}"
        )


def _next_entry_number(db: Session, member_id: UUID) -> int:
    current = db.query(func.max(SavingsTransaction.entry_number)).filter(
        SavingsTransaction.member_id == member_id
    ).scalar()
    return (current or 0) + 1


def record_savings_transaction(
    db: Session,
    actor: Actor,
    member_id: UUID,
    amount: Decimal,
    transaction_type: TransactionType,
    receipt_number: str = None,
    description: str = None,
    transaction_date: date = None,
) -> SavingsTransaction:
    """Record a deposit or withdrawal and refresh the member's total_savings.

    The insert and the recompute commit together.
    """
    amount = _validate_amount(amount)
    transaction_type = _validate_type(transaction_type)

    with unit_of_work(db):
        member = lock_member(db, member_id)
        ensure_authorized(actor, Operation.RECORD_SAVINGS, member)

        if member.status != MemberStatus.ACTIVE:
            raise ValidationError(f"Member {member.member_number} is {member.status.value}")

        transaction = SavingsTransaction(
            member_id=member.id,
            amount=amount,
            transaction_type=transaction_type,
            transaction_date=transaction_date or date.today(),
            entry_number=_next_entry_number(db, member.id),
            description=description,
            receipt_number=receipt_number,
            recorded_by=actor.user_id,
        )
        db.add(transaction)
        recompute_member_savings(db, member.id)
        _ensure_not_overdrawn(member)

    db.refresh(transaction)
    logger.info(
        f"Recorded {transaction_type.value} of {amount} for member {member.member_number} "
        f"(balance after {transaction.balance_after})"
    )
    return transaction


def update_savings_transaction(
    db: Session,
    actor: Actor,
    transaction_id: UUID,
    **changes
) -> SavingsTransaction:
    """Correct a recorded transaction (staff only) and replay the member's history."""
    ensure_authorized(actor, Operation.UPDATE_SAVINGS)

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    if "amount" in changes:
        changes["amount"] = _validate_amount(changes["amount"])
    if "transaction_type" in changes:
        changes["transaction_type"] = _validate_type(changes["transaction_type"])
    if "transaction_date" in changes and changes["transaction_date"] is None:
        raise ValidationError("Transaction date is required")

    with unit_of_work(db):
        transaction = db.query(SavingsTransaction).filter(SavingsTransaction.id == transaction_id).first()
        if not transaction:
            raise NotFound("Savings transaction not found")
        member = lock_member(db, transaction.member_id)

        for key, value in changes.items():
            setattr(transaction, key, value)

        recompute_member_savings(db, member.id)
        _ensure_not_overdrawn(member)

    db.refresh(transaction)
    logger.info(f"Savings transaction {transaction.id} updated by {actor.user_id}: {sorted(changes)}")
    return transaction


def delete_savings_transaction(
    db: Session,
    actor: Actor,
    transaction_id: UUID
) -> Member:
    """Remove a transaction (staff only) and replay the member's history.

    Returns the member with its recomputed total.
    """
    ensure_authorized(actor, Operation.DELETE_SAVINGS)

    with unit_of_work(db):
        transaction = db.query(SavingsTransaction).filter(SavingsTransaction.id == transaction_id).first()
        if not transaction:
            raise NotFound("Savings transaction not found")
        member = lock_member(db, transaction.member_id)

        db.delete(transaction)
        recompute_member_savings(db, member.id)
        _ensure_not_overdrawn(member)

    db.refresh(member)
    logger.info(f"Savings transaction {transaction_id} deleted by {actor.user_id}")
    return member


def get_savings_transaction(db: Session, actor: Actor, transaction_id: UUID) -> SavingsTransaction:
    ensure_authorized(actor, Operation.READ_SAVINGS)
    transaction = db.query(SavingsTransaction).filter(SavingsTransaction.id == transaction_id).first()
    if not transaction:
        raise NotFound("Savings transaction not found")
    return transaction


def list_savings_transactions(
    db: Session,
    actor: Actor,
    member_id: Optional[UUID] = None,
    limit: int = 50
) -> List[SavingsTransaction]:
    """Most recent transactions first."""
    ensure_authorized(actor, Operation.READ_SAVINGS)
    query = db.query(SavingsTransaction)
    if member_id is not None:
        query = query.filter(SavingsTransaction.member_id == member_id)
    return query.order_by(
        SavingsTransaction.transaction_date.desc(),
        SavingsTransaction.entry_number.desc()
    ).limit(limit).all()
