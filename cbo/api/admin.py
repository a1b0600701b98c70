from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from cbo.core.audit import audit_actor
from cbo.core.dependencies import get_current_user, require_admin
from cbo.core.exceptions import NotFound
from cbo.db.base import get_db
from cbo.models.role import AppRole, UserRole
from cbo.models.user import User
from cbo.schemas.admin import RoleAssignment, UserRoleResponse
from cbo.schemas.auth import UserResponse
from cbo.services.rbac import Actor, assign_role, get_user_roles, revoke_role

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users", response_model=List[UserResponse])
def get_users(actor: Actor = Depends(require_admin), db: Session = Depends(get_db)):
    """All users with their roles."""
    users = db.query(User).order_by(User.email.asc()).all()
    return [UserResponse.from_user(u, roles=get_user_roles(u.id, db), member=u.member) for u in users]


@router.get("/users/{user_id}/roles", response_model=List[UserRoleResponse])
def get_roles(user_id: UUID, actor: Actor = Depends(require_admin), db: Session = Depends(get_db)):
    if not db.query(User.id).filter(User.id == user_id).first():
        raise NotFound("User not found")
    return db.query(UserRole).filter(UserRole.user_id == user_id).order_by(UserRole.assigned_at.asc()).all()


@router.post("/users/{user_id}/roles", response_model=UserRoleResponse, status_code=status.HTTP_201_CREATED)
def post_role(
    user_id: UUID,
    body: RoleAssignment,
    actor: Actor = Depends(require_admin),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Grant a role. Admins cannot change their own roles."""
    user_role = assign_role(db, actor, user_id, body.role)
    audit_actor(actor, current_user.email, "Assign role", f"user={user_id} role={body.role.value}")
    return user_role


@router.delete("/users/{user_id}/roles/{role}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    user_id: UUID,
    role: AppRole,
    actor: Actor = Depends(require_admin),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    revoke_role(db, actor, user_id, role)
    audit_actor(actor, current_user.email, "Revoke role", f"user={user_id} role={role.value}")
