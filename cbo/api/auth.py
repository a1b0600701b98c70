import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cbo.core.audit import write_audit_log
from cbo.core.dependencies import get_current_user
from cbo.db.base import get_db
from cbo.models.user import User
from cbo.schemas.auth import UserRegister, UserLogin, Token, UserResponse
from cbo.services.auth import authenticate_user, create_user, create_access_token_for_user, get_member_for_user
from cbo.services.rbac import get_user_roles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Register a new user. The member role and member record are created with it."""
    user = create_user(
        db=db,
        email=user_data.email,
        password=user_data.password,
        full_name=user_data.full_name,
        phone_number=user_data.phone_number,
    )
    member = get_member_for_user(db, user)
    write_audit_log(user_name=user.email, user_role="member", action="Register", details=f"member={member.member_number}")
    return UserResponse.from_user(user, roles=get_user_roles(user.id, db), member=member)


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Login and get JWT token."""
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    access_token = create_access_token_for_user(user)
    roles = get_user_roles(user.id, db)
    user_role = ",".join(sorted(r.value for r in roles)) or "none"
    write_audit_log(user_name=user.email, user_role=user_role, action="Login", details=f"email={user.email}")
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current user with roles and member number."""
    return UserResponse.from_user(
        current_user,
        roles=get_user_roles(current_user.id, db),
        member=get_member_for_user(db, current_user),
    )
