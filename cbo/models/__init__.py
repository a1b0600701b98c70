from cbo.db.base import Base

# Import all models so Alembic can detect them
from cbo.models.user import User
from cbo.models.role import AppRole, UserRole
from cbo.models.member import Member, MemberStatus, MemberStatusHistory
from cbo.models.transaction import (
    SavingsTransaction,
    TransactionType,
    Loan,
    LoanStatus,
    LoanPayment,
    PaymentMethod,
)
from cbo.models.system import NumberSequence

__all__ = [
    "Base",
    "User",
    "AppRole",
    "UserRole",
    "Member",
    "MemberStatus",
    "MemberStatusHistory",
    "SavingsTransaction",
    "TransactionType",
    "Loan",
    "LoanStatus",
    "LoanPayment",
    "PaymentMethod",
    "NumberSequence",
]
