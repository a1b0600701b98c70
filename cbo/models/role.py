from sqlalchemy import Column, ForeignKey, DateTime, Enum as SQLEnum, UniqueConstraint, Uuid, text
from sqlalchemy.orm import relationship
import uuid
from cbo.db.base import Base
import enum


class AppRole(str, enum.Enum):
    """Application roles. The old 'secretary' role is retired."""
    ADMIN = "admin"
    TREASURER = "treasurer"
    MEMBER = "member"


class UserRole(Base):
    """(user, role) membership pairs - the single source of role truth."""
    __tablename__ = "user_role"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False, index=True)
    role = Column(SQLEnum(AppRole, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    assigned_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)
    assigned_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="user_roles", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role_user_id_role"),
    )
