from pydantic import BaseModel, EmailStr
from typing import Optional, List
from uuid import UUID


class UserRegister(BaseModel):
    email: EmailStr
    password: str
    full_name: str
    phone_number: Optional[str] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    phone_number: Optional[str] = None
    is_active: bool
    roles: List[str] = []
    member_id: Optional[UUID] = None
    member_number: Optional[str] = None

    @classmethod
    def from_user(cls, user, roles=None, member=None):
        """Build the response from a User plus its role names and member record."""
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            phone_number=user.phone_number,
            is_active=user.is_active,
            roles=sorted(r.value for r in (roles or [])),
            member_id=member.id if member else None,
            member_number=member.member_number if member else None,
        )

    class Config:
        from_attributes = True
