from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from cbo.db.base import get_db
from cbo.models.role import AppRole
from cbo.models.user import User
from cbo.core.security import decode_access_token
from cbo.services.rbac import Actor, build_actor
import uuid

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user_id_str: str = payload.get("sub")
    if user_id_str is None:
        raise credentials_exception

    try:
        user_id = uuid.UUID(user_id_str)
    except (ValueError, TypeError):
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise credentials_exception

    return user


async def get_current_actor(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Actor:
    """The authenticated caller with roles loaded from user_role."""
    return build_actor(db, current_user.id)


def require_role(role: AppRole):
    """Dependency factory for requiring a specific role."""
    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.has_role(role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User does not have required role: {role.value}"
            )
        return actor
    return role_checker


def require_any_role(*roles: AppRole):
    """Dependency factory for requiring any of the specified roles."""
    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not any(actor.has_role(role) for role in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User does not have any of the required roles: {', '.join(r.value for r in roles)}"
            )
        return actor
    return role_checker


require_admin = require_role(AppRole.ADMIN)
require_staff = require_any_role(AppRole.ADMIN, AppRole.TREASURER)
