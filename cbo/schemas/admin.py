from pydantic import BaseModel
from datetime import datetime
from uuid import UUID
from typing import Optional
from cbo.models.role import AppRole


class RoleAssignment(BaseModel):
    role: AppRole


class UserRoleResponse(BaseModel):
    id: UUID
    user_id: UUID
    role: AppRole
    assigned_by: Optional[UUID] = None
    assigned_at: datetime

    class Config:
        from_attributes = True
