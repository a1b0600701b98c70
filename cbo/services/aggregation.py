"""Recompute derived member and loan fields from their source records.

Every function here rebuilds the derived values from the complete record
set (never applies a delta), locks the parent row for the rest of the
caller's transaction, and flushes without committing. Callers run them
inside the same ``unit_of_work`` as the write that made them necessary.
"""
import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from cbo.core.exceptions import NotFound
from cbo.models.member import Member
from cbo.models.transaction import Loan, LoanPayment, SavingsTransaction
from cbo.services.ledger import final_balance, running_balance, sum_amounts, to_money
from cbo.services.loan_rules import ACTIVE_STATUSES, outstanding_balance

logger = logging.getLogger(__name__)


def lock_member(db: Session, member_id: UUID) -> Member:
    member = db.query(Member).filter(Member.id == member_id).with_for_update().first()
    if not member:
        raise NotFound("Member not found")
    return member


def lock_loan(db: Session, loan_id: UUID) -> Loan:
    loan = db.query(Loan).filter(Loan.id == loan_id).with_for_update().first()
    if not loan:
        raise NotFound("Loan not found")
    return loan


def recompute_member_savings(db: Session, member_id: UUID) -> Decimal:
    """Replay the member's savings history; refresh balance_after snapshots and total_savings."""
    db.flush()
    member = lock_member(db, member_id)

    transactions = db.query(SavingsTransaction).filter(
        SavingsTransaction.member_id == member_id
    ).all()
    lines = running_balance(transactions)
    for transaction, balance in lines:
        if transaction.balance_after is None or to_money(transaction.balance_after) != balance:
            transaction.balance_after = balance

    member.total_savings = final_balance(lines)
    db.flush()
    logger.debug(f"Member {member.member_number}: {len(lines)} transactions, total_savings={member.total_savings}")
    return member.total_savings


def recompute_loan_balance(db: Session, loan_id: UUID) -> Loan:
    """Set amount_paid to the sum of all payments and balance to total_amount_due - amount_paid."""
    db.flush()
    loan = lock_loan(db, loan_id)

    payments = db.query(LoanPayment).filter(LoanPayment.loan_id == loan_id).all()
    loan.amount_paid = sum_amounts(payments)
    loan.balance = outstanding_balance(loan.total_amount_due, loan.amount_paid)
    db.flush()
    logger.debug(f"Loan {loan.loan_number}: amount_paid={loan.amount_paid}, balance={loan.balance}")
    return loan


def recompute_member_loans(db: Session, member_id: UUID) -> Decimal:
    """total_loans = principal of the member's approved or disbursed loans."""
    db.flush()
    member = lock_member(db, member_id)

    active_loans = db.query(Loan).filter(
        Loan.member_id == member_id,
        Loan.status.in_(ACTIVE_STATUSES)
    ).all()
    member.total_loans = to_money(sum((to_money(loan.amount) for loan in active_loans), Decimal("0.00")))
    db.flush()
    return member.total_loans
