from sqlalchemy import Column, String, ForeignKey, DateTime, Date, Integer, Numeric, Enum as SQLEnum, Text, UniqueConstraint, Uuid, text, func
from sqlalchemy.orm import relationship
import uuid
from datetime import date
from decimal import Decimal
from cbo.db.base import Base
import enum


class TransactionType(str, enum.Enum):
    """Savings transaction type."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class LoanStatus(str, enum.Enum):
    """Loan lifecycle status."""
    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"


class PaymentMethod(str, enum.Enum):
    """How a loan payment was received."""
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"


class SavingsTransaction(Base):
    """Savings deposit or withdrawal. Immutable once recorded in normal flow."""
    __tablename__ = "savings_transaction"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    transaction_type = Column(SQLEnum(TransactionType, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    transaction_date = Column(Date, nullable=False, default=date.today)
    entry_number = Column(Integer, nullable=False)  # per-member insertion order, breaks same-date ties
    description = Column(Text, nullable=True)
    receipt_number = Column(String(100), nullable=True)
    balance_after = Column(Numeric(10, 2), nullable=True)  # derived
    recorded_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    member = relationship("Member", back_populates="savings_transactions")

    __table_args__ = (
        UniqueConstraint("member_id", "entry_number", name="uq_savings_transaction_member_entry"),
    )


class Loan(Base):
    """Member loan with its lifecycle and derived repayment position."""
    __tablename__ = "loan"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_number = Column(String(20), nullable=False, unique=True, index=True)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False, default=Decimal("10.00"))
    duration_months = Column(Integer, nullable=False)
    purpose = Column(Text, nullable=False)
    status = Column(SQLEnum(LoanStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=LoanStatus.PENDING, nullable=False)
    application_date = Column(Date, nullable=False, default=date.today)
    approval_date = Column(Date, nullable=True)
    disbursement_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    total_amount_due = Column(Numeric(10, 2), nullable=True)  # derived, set at approval
    amount_paid = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))  # derived
    balance = Column(Numeric(10, 2), nullable=True)  # derived
    approved_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())

    # Relationships
    member = relationship("Member", back_populates="loans")
    payments = relationship("LoanPayment", back_populates="loan", order_by="LoanPayment.payment_date")


class LoanPayment(Base):
    """Loan repayment event."""
    __tablename__ = "loan_payment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid(as_uuid=True), ForeignKey("loan.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today)
    payment_method = Column(SQLEnum(PaymentMethod, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=PaymentMethod.CASH, nullable=False)
    receipt_number = Column(String(100), nullable=True)
    recorded_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    loan = relationship("Loan", back_populates="payments")
