from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cbo.core.audit import audit_actor
from cbo.core.dependencies import get_current_actor, get_current_user
from cbo.core.exceptions import NotFound
from cbo.db.base import get_db
from cbo.models.member import MemberStatus
from cbo.models.user import User
from cbo.schemas.member import MemberResponse, MemberUpdate, MemberStatusUpdate, MemberStatementResponse
from cbo.services.member import (
    change_member_status,
    get_member,
    get_member_statement,
    list_members,
    update_member,
)
from cbo.services.rbac import Actor

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("", response_model=List[MemberResponse])
def get_members(
    status: Optional[MemberStatus] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return list_members(db, actor, status=status)


@router.get("/me", response_model=MemberResponse)
def get_my_member(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """The caller's own member record."""
    if actor.member_id is None:
        raise NotFound("No member record for this user")
    return get_member(db, actor, actor.member_id)


@router.get("/{member_id}", response_model=MemberResponse)
def get_member_by_id(member_id: UUID, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return get_member(db, actor, member_id)


@router.get("/{member_id}/statement", response_model=MemberStatementResponse)
def get_statement(member_id: UUID, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Savings history in replay order with the running balance after each transaction."""
    return MemberStatementResponse.from_statement(get_member_statement(db, actor, member_id))


@router.patch("/{member_id}", response_model=MemberResponse)
def patch_member(
    member_id: UUID,
    changes: MemberUpdate,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    fields = changes.model_dump(exclude_unset=True)
    member = update_member(db, actor, member_id, **fields)
    audit_actor(actor, current_user.email, "Update member", f"member={member.member_number} fields={sorted(fields)}")
    return member


@router.put("/{member_id}/status", response_model=MemberResponse)
def put_member_status(
    member_id: UUID,
    body: MemberStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    member = change_member_status(db, actor, member_id, body.status, reason=body.reason)
    audit_actor(actor, current_user.email, "Change member status", f"member={member.member_number} status={member.status.value}")
    return member
