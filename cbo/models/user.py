from sqlalchemy import Column, String, Boolean, DateTime, Uuid, text
from sqlalchemy.orm import relationship
import uuid
from cbo.db.base import Base


class User(Base):
    """Authenticated identity. Role membership lives in user_role only."""
    __tablename__ = "user"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(200), nullable=False)
    phone_number = Column(String(20), nullable=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    date_joined = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    member = relationship("Member", back_populates="user", uselist=False, foreign_keys="[Member.user_id]")
    user_roles = relationship("UserRole", back_populates="user", foreign_keys="[UserRole.user_id]", cascade="all, delete-orphan")
