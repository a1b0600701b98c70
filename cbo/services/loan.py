import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from cbo.core.config import settings
from cbo.core.exceptions import InvalidTransition, NotFound, ValidationError
from cbo.db.base import unit_of_work
from cbo.models.member import Member, MemberStatus
from cbo.models.transaction import Loan, LoanPayment, LoanStatus, PaymentMethod
from cbo.services.aggregation import lock_loan, recompute_loan_balance, recompute_member_loans
from cbo.services.ledger import ZERO, to_money
from cbo.services.loan_rules import (
    ACTIVE_STATUSES,
    ensure_transition,
    on_status_change,
    validate_loan_terms,
)
from cbo.services.rbac import Actor, Operation, ensure_authorized
from cbo.services.sequence import next_loan_number

logger = logging.getLogger(__name__)

PAYMENT_EDITABLE_FIELDS = ("amount", "payment_date", "payment_method", "receipt_number", "notes")


def _validate_payment_amount(amount) -> Decimal:
    if amount is None or to_money(amount) <= ZERO:
        raise ValidationError("Payment amount must be greater than 0")
    return to_money(amount)


def _validate_method(payment_method) -> PaymentMethod:
    try:
        return PaymentMethod(payment_method)
    except ValueError:
        raise ValidationError(f"Unknown payment method: {payment_method}")


def _ensure_accepts_payments(loan: Loan, action: str) -> None:
    """Payments are only recorded or corrected while the loan is live."""
    if LoanStatus(loan.status) not in ACTIVE_STATUSES:
        raise InvalidTransition(
            f"Cannot {action} a payment on a {loan.status.value} loan",
            current_status=loan.status,
        )


def _ensure_not_overpaid(loan: Loan) -> None:
    if loan.balance is not None and to_money(loan.balance) < ZERO:
        raise ValidationError(
            f"Payments exceed the amount due on loan {loan.loan_number} by {-to_money(loan.balance)}"
        )


def apply_for_loan(
    db: Session,
    actor: Actor,
    member_id: UUID,
    amount: Decimal,
    duration_months: int,
    purpose: str,
    interest_rate: Decimal = None,
) -> Loan:
    """Create a pending loan application with a freshly allocated loan number."""
    if interest_rate is None:
        interest_rate = settings.DEFAULT_INTEREST_RATE
    # Stored as Numeric(5, 2).
    interest_rate = to_money(interest_rate)
    validate_loan_terms(amount, interest_rate, duration_months, purpose)

    with unit_of_work(db):
        member = db.query(Member).filter(Member.id == member_id).first()
        if not member:
            raise NotFound("Member not found")
        ensure_authorized(actor, Operation.APPLY_FOR_LOAN, member)

        if member.status != MemberStatus.ACTIVE:
            raise ValidationError(f"Member {member.member_number} is {member.status.value}")

        loan = Loan(
            loan_number=next_loan_number(db),
            member_id=member.id,
            amount=to_money(amount),
            interest_rate=interest_rate,
            duration_months=duration_months,
            purpose=purpose.strip(),
            status=LoanStatus.PENDING,
            application_date=date.today(),
            amount_paid=Decimal("0.00"),
        )
        db.add(loan)

    db.refresh(loan)
    logger.info(f"Loan {loan.loan_number} applied for by member {member.member_number}: {loan.amount}")
    return loan


def _transition(
    db: Session,
    actor: Actor,
    loan_id: UUID,
    new_status: LoanStatus,
    today: Optional[date] = None,
) -> Loan:
    ensure_authorized(actor, Operation.MANAGE_LOAN)

    with unit_of_work(db):
        loan = lock_loan(db, loan_id)
        old_status = LoanStatus(loan.status)
        ensure_transition(old_status, new_status)

        if new_status == LoanStatus.COMPLETED:
            recompute_loan_balance(db, loan.id)
            if loan.balance is None or to_money(loan.balance) > ZERO:
                raise InvalidTransition(
                    f"Loan {loan.loan_number} still has an outstanding balance of {loan.balance}",
                    current_status=old_status,
                    requested_status=new_status,
                )

        loan.status = new_status
        on_status_change(loan, old_status, new_status, today=today)

        if new_status == LoanStatus.APPROVED:
            loan.approved_by = actor.user_id
            # Payments never precede approval, but keep the identity exact.
            recompute_loan_balance(db, loan.id)
        elif new_status == LoanStatus.DISBURSED:
            loan.disbursement_date = today or date.today()

        recompute_member_loans(db, loan.member_id)

    db.refresh(loan)
    logger.info(f"Loan {loan.loan_number}: {old_status.value} -> {new_status.value} by {actor.user_id}")
    return loan


def approve_loan(db: Session, actor: Actor, loan_id: UUID, today: Optional[date] = None) -> Loan:
    """Approve a pending loan, fixing total_amount_due, balance and due_date."""
    return _transition(db, actor, loan_id, LoanStatus.APPROVED, today=today)


def disburse_loan(db: Session, actor: Actor, loan_id: UUID, today: Optional[date] = None) -> Loan:
    """Mark an approved loan as paid out to the member."""
    return _transition(db, actor, loan_id, LoanStatus.DISBURSED, today=today)


def complete_loan(db: Session, actor: Actor, loan_id: UUID) -> Loan:
    """Close a disbursed loan whose balance has reached zero."""
    return _transition(db, actor, loan_id, LoanStatus.COMPLETED)


def mark_loan_defaulted(db: Session, actor: Actor, loan_id: UUID) -> Loan:
    return _transition(db, actor, loan_id, LoanStatus.DEFAULTED)


def record_loan_payment(
    db: Session,
    actor: Actor,
    loan_id: UUID,
    amount: Decimal,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    receipt_number: str = None,
    notes: str = None,
    payment_date: date = None,
) -> LoanPayment:
    """Record a repayment and refresh the loan's amount_paid and balance.

    Staff only, whoever owns the loan. The insert and the recompute commit
    together.
    """
    ensure_authorized(actor, Operation.RECORD_LOAN_PAYMENT)
    amount = _validate_payment_amount(amount)
    payment_method = _validate_method(payment_method or PaymentMethod.CASH)

    with unit_of_work(db):
        loan = lock_loan(db, loan_id)
        _ensure_accepts_payments(loan, "record")

        payment = LoanPayment(
            loan_id=loan.id,
            amount=amount,
            payment_date=payment_date or date.today(),
            payment_method=payment_method,
            receipt_number=receipt_number,
            recorded_by=actor.user_id,
            notes=notes,
        )
        db.add(payment)
        recompute_loan_balance(db, loan.id)
        _ensure_not_overpaid(loan)

    db.refresh(payment)
    db.refresh(loan)
    logger.info(f"Payment of {amount} on loan {loan.loan_number}; paid {loan.amount_paid}, balance {loan.balance}")
    return payment


def update_loan_payment(
    db: Session,
    actor: Actor,
    payment_id: UUID,
    **changes
) -> LoanPayment:
    """Correct a recorded payment (staff only) and recompute its loan."""
    ensure_authorized(actor, Operation.UPDATE_LOAN_PAYMENT)

    unknown = set(changes) - set(PAYMENT_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    if "amount" in changes:
        changes["amount"] = _validate_payment_amount(changes["amount"])
    if "payment_method" in changes:
        changes["payment_method"] = _validate_method(changes["payment_method"])
    if "payment_date" in changes and changes["payment_date"] is None:
        raise ValidationError("Payment date is required")

    with unit_of_work(db):
        payment = db.query(LoanPayment).filter(LoanPayment.id == payment_id).first()
        if not payment:
            raise NotFound("Loan payment not found")
        loan = lock_loan(db, payment.loan_id)
        _ensure_accepts_payments(loan, "change")

        for key, value in changes.items():
            setattr(payment, key, value)

        recompute_loan_balance(db, loan.id)
        _ensure_not_overpaid(loan)

    db.refresh(payment)
    logger.info(f"Loan payment {payment.id} updated by {actor.user_id}: {sorted(changes)}")
    return payment


def delete_loan_payment(
    db: Session,
    actor: Actor,
    payment_id: UUID
) -> Loan:
    """Remove a payment (staff only). Returns the loan with recomputed totals."""
    ensure_authorized(actor, Operation.DELETE_LOAN_PAYMENT)

    with unit_of_work(db):
        payment = db.query(LoanPayment).filter(LoanPayment.id == payment_id).first()
        if not payment:
            raise NotFound("Loan payment not found")
        loan = lock_loan(db, payment.loan_id)
        _ensure_accepts_payments(loan, "delete")

        db.delete(payment)
        recompute_loan_balance(db, loan.id)

    db.refresh(loan)
    logger.info(f"Loan payment {payment_id} deleted by {actor.user_id}; loan {loan.loan_number} balance {loan.balance}")
    return loan


def get_loan(db: Session, actor: Actor, loan_id: UUID) -> Loan:
    ensure_authorized(actor, Operation.READ_LOAN)
    loan = db.query(Loan).filter(Loan.id == loan_id).first()
    if not loan:
        raise NotFound("Loan not found")
    return loan


def list_loans(
    db: Session,
    actor: Actor,
    status: Optional[LoanStatus] = None,
    member_id: Optional[UUID] = None
) -> List[Loan]:
    """Newest applications first."""
    ensure_authorized(actor, Operation.READ_LOAN)
    query = db.query(Loan)
    if status is not None:
        query = query.filter(Loan.status == LoanStatus(status))
    if member_id is not None:
        query = query.filter(Loan.member_id == member_id)
    return query.order_by(Loan.application_date.desc(), Loan.loan_number.desc()).all()


def list_loan_payments(db: Session, actor: Actor, loan_id: UUID) -> List[LoanPayment]:
    ensure_authorized(actor, Operation.READ_LOAN_PAYMENT)
    if not db.query(Loan.id).filter(Loan.id == loan_id).first():
        raise NotFound("Loan not found")
    return db.query(LoanPayment).filter(
        LoanPayment.loan_id == loan_id
    ).order_by(LoanPayment.payment_date.asc(), LoanPayment.created_at.asc()).all()
