from sqlalchemy import Column, String, ForeignKey, Date, DateTime, Numeric, Enum as SQLEnum, Text, Uuid, text, func
from sqlalchemy.orm import relationship
import uuid
from datetime import date
from decimal import Decimal
from cbo.db.base import Base
import enum


class MemberStatus(str, enum.Enum):
    """Member status enum."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Member(Base):
    """CBO member linked 1:1 to a user, carrying derived savings/loan totals."""
    __tablename__ = "member"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_number = Column(String(20), nullable=False, unique=True, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False, unique=True, index=True)
    full_name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=True)
    national_id = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    date_joined = Column(Date, nullable=False, default=date.today)
    status = Column(SQLEnum(MemberStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=MemberStatus.ACTIVE, nullable=False)
    monthly_savings_target = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    total_savings = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))  # derived
    total_loans = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))  # derived
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="member", foreign_keys=[user_id])
    savings_transactions = relationship("SavingsTransaction", back_populates="member")
    loans = relationship("Loan", back_populates="member")
    status_history = relationship("MemberStatusHistory", back_populates="member", order_by="MemberStatusHistory.changed_at.desc()")


class MemberStatusHistory(Base):
    """Audit trail for member status changes."""
    __tablename__ = "member_status_history"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    old_status = Column(SQLEnum(MemberStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=True)
    new_status = Column(SQLEnum(MemberStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    changed_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False)
    changed_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    reason = Column(Text, nullable=True)

    # Relationships
    member = relationship("Member", back_populates="status_history")
