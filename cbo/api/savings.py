from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from cbo.core.audit import audit_actor
from cbo.core.dependencies import get_current_actor, get_current_user
from cbo.db.base import get_db
from cbo.models.user import User
from cbo.schemas.member import MemberResponse
from cbo.schemas.savings import SavingsTransactionCreate, SavingsTransactionUpdate, SavingsTransactionResponse
from cbo.services.rbac import Actor
from cbo.services.savings import (
    delete_savings_transaction,
    get_savings_transaction,
    list_savings_transactions,
    record_savings_transaction,
    update_savings_transaction,
)

router = APIRouter(prefix="/api/savings", tags=["savings"])


@router.get("", response_model=List[SavingsTransactionResponse])
def get_transactions(
    member_id: Optional[UUID] = None,
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return list_savings_transactions(db, actor, member_id=member_id, limit=limit)


@router.post("", response_model=SavingsTransactionResponse, status_code=status.HTTP_201_CREATED)
def post_transaction(
    body: SavingsTransactionCreate,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record a deposit or withdrawal. Members may only record against themselves."""
    transaction = record_savings_transaction(
        db,
        actor,
        body.member_id,
        body.amount,
        body.transaction_type,
        receipt_number=body.receipt_number,
        description=body.description,
        transaction_date=body.transaction_date,
    )
    audit_actor(
        actor, current_user.email, "Record savings",
        f"member_id={body.member_id} type={transaction.transaction_type.value} amount={transaction.amount}"
    )
    return transaction


@router.get("/{transaction_id}", response_model=SavingsTransactionResponse)
def get_transaction(transaction_id: UUID, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return get_savings_transaction(db, actor, transaction_id)


@router.patch("/{transaction_id}", response_model=SavingsTransactionResponse)
def patch_transaction(
    transaction_id: UUID,
    changes: SavingsTransactionUpdate,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fields = changes.model_dump(exclude_unset=True)
    transaction = update_savings_transaction(db, actor, transaction_id, **fields)
    audit_actor(actor, current_user.email, "Update savings", f"transaction={transaction_id} fields={sorted(fields)}")
    return transaction


@router.delete("/{transaction_id}", response_model=MemberResponse)
def remove_transaction(
    transaction_id: UUID,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a transaction; responds with the member's recomputed totals."""
    member = delete_savings_transaction(db, actor, transaction_id)
    audit_actor(actor, current_user.email, "Delete savings", f"transaction={transaction_id} member={member.member_number}")
    return member
