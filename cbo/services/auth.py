import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from cbo.core.config import settings
from cbo.core.exceptions import ValidationError
from cbo.core.security import verify_password, get_password_hash, create_access_token
from cbo.db.base import unit_of_work
from cbo.models.member import Member, MemberStatus
from cbo.models.role import AppRole
from cbo.models.user import User
from cbo.services.member import add_member, get_member_by_user_id
from cbo.services.rbac import Actor, grant_role_unchecked

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Authenticate user by email and password.

    Disabled users and inactive members cannot log in.
    """
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user:
        logger.debug(f"User not found: {email}")
        return None

    if not verify_password(password, user.password_hash):
        logger.debug(f"Password verification failed for user: {email}")
        return None

    if not user.is_active:
        logger.debug(f"User {email} is disabled, login denied")
        return None

    member = get_member_by_user_id(db, user.id)
    if member and member.status == MemberStatus.INACTIVE:
        logger.debug(f"User {email} has inactive member record, login denied")
        return None

    return user


def create_user(
    db: Session,
    email: str,
    password: str,
    full_name: str,
    phone_number: str = None,
) -> User:
    """Sign up: the user, the default member role and the member record, all or nothing."""
    email = email.lower()
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not full_name or not full_name.strip():
        raise ValidationError("Full name is required")

    if db.query(User.id).filter(User.email == email).first():
        logger.warning(f"Registration attempt with existing email: {email}")
        raise ValidationError("Email already registered")

    with unit_of_work(db):
        user = User(
            email=email,
            password_hash=get_password_hash(password),
            full_name=full_name.strip(),
            phone_number=phone_number,
        )
        db.add(user)
        db.flush()

        grant_role_unchecked(db, user.id, AppRole.MEMBER)
        # The new user registers their own member record.
        self_actor = Actor(user_id=user.id, roles=frozenset({AppRole.MEMBER}))
        member = add_member(db, self_actor, user.id, full_name, phone=phone_number)

    db.refresh(user)
    logger.info(f"User {email} registered as member {member.member_number}")
    return user


def create_access_token_for_user(user: User) -> str:
    """Create access token for user."""
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return create_access_token(
        data={"sub": str(user.id)},
        expires_delta=access_token_expires
    )


def get_member_for_user(db: Session, user: User) -> Optional[Member]:
    return get_member_by_user_id(db, user.id)
