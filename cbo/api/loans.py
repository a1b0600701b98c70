from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from cbo.core.audit import audit_actor
from cbo.core.dependencies import get_current_actor, get_current_user
from cbo.db.base import get_db
from cbo.models.transaction import LoanStatus
from cbo.models.user import User
from cbo.schemas.loan import (
    LoanApplication,
    LoanDetailResponse,
    LoanPaymentCreate,
    LoanPaymentResponse,
    LoanPaymentUpdate,
    LoanResponse,
)
from cbo.services.loan import (
    apply_for_loan,
    approve_loan,
    complete_loan,
    delete_loan_payment,
    disburse_loan,
    get_loan,
    list_loan_payments,
    list_loans,
    mark_loan_defaulted,
    record_loan_payment,
    update_loan_payment,
)
from cbo.services.rbac import Actor

router = APIRouter(prefix="/api/loans", tags=["loans"])


@router.get("", response_model=List[LoanResponse])
def get_loans(
    status: Optional[LoanStatus] = None,
    member_id: Optional[UUID] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return list_loans(db, actor, status=status, member_id=member_id)


@router.post("", response_model=LoanResponse, status_code=status.HTTP_201_CREATED)
def post_loan(
    body: LoanApplication,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Apply for a loan. Starts pending; members may only apply for themselves."""
    loan = apply_for_loan(
        db,
        actor,
        body.member_id,
        body.amount,
        body.duration_months,
        body.purpose,
        interest_rate=body.interest_rate,
    )
    audit_actor(actor, current_user.email, "Apply for loan", f"loan={loan.loan_number} amount={loan.amount}")
    return loan


@router.get("/{loan_id}", response_model=LoanDetailResponse)
def get_loan_detail(loan_id: UUID, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Loan with its payments."""
    return get_loan(db, actor, loan_id)


@router.post("/{loan_id}/approve", response_model=LoanResponse)
def post_approve(
    loan_id: UUID,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Approve a pending loan. Sets total amount due, balance and due date."""
    loan = approve_loan(db, actor, loan_id)
    audit_actor(actor, current_user.email, "Approve loan", f"loan={loan.loan_number} total_due={loan.total_amount_due}")
    return loan


@router.post("/{loan_id}/disburse", response_model=LoanResponse)
def post_disburse(
    loan_id: UUID,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loan = disburse_loan(db, actor, loan_id)
    audit_actor(actor, current_user.email, "Disburse loan", f"loan={loan.loan_number}")
    return loan


@router.post("/{loan_id}/complete", response_model=LoanResponse)
def post_complete(
    loan_id: UUID,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loan = complete_loan(db, actor, loan_id)
    audit_actor(actor, current_user.email, "Complete loan", f"loan={loan.loan_number}")
    return loan


@router.post("/{loan_id}/default", response_model=LoanResponse)
def post_default(
    loan_id: UUID,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    loan = mark_loan_defaulted(db, actor, loan_id)
    audit_actor(actor, current_user.email, "Mark loan defaulted", f"loan={loan.loan_number} balance={loan.balance}")
    return loan


@router.get("/{loan_id}/payments", response_model=List[LoanPaymentResponse])
def get_payments(loan_id: UUID, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return list_loan_payments(db, actor, loan_id)


@router.post("/{loan_id}/payments", response_model=LoanPaymentResponse, status_code=status.HTTP_201_CREATED)
def post_payment(
    loan_id: UUID,
    body: LoanPaymentCreate,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record a repayment (treasurer or admin)."""
    payment = record_loan_payment(
        db,
        actor,
        loan_id,
        body.amount,
        payment_method=body.payment_method,
        receipt_number=body.receipt_number,
        notes=body.notes,
        payment_date=body.payment_date,
    )
    audit_actor(actor, current_user.email, "Record loan payment", f"loan_id={loan_id} amount={payment.amount}")
    return payment


@router.patch("/payments/{payment_id}", response_model=LoanPaymentResponse)
def patch_payment(
    payment_id: UUID,
    changes: LoanPaymentUpdate,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fields = changes.model_dump(exclude_unset=True)
    payment = update_loan_payment(db, actor, payment_id, **fields)
    audit_actor(actor, current_user.email, "Update loan payment", f"payment={payment_id} fields={sorted(fields)}")
    return payment


@router.delete("/payments/{payment_id}", response_model=LoanResponse)
def remove_payment(
    payment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a payment; responds with the loan's recomputed balance."""
    loan = delete_loan_payment(db, actor, payment_id)
    audit_actor(actor, current_user.email, "Delete loan payment", f"payment={payment_id} loan={loan.loan_number}")
    return loan
