from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from cbo.models.member import MemberStatus
from cbo.models.transaction import TransactionType


class MemberResponse(BaseModel):
    id: UUID
    member_number: str
    user_id: UUID
    full_name: str
    phone: Optional[str] = None
    national_id: Optional[str] = None
    address: Optional[str] = None
    date_joined: date
    status: MemberStatus
    monthly_savings_target: Decimal
    total_savings: Decimal
    total_loans: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class MemberUpdate(BaseModel):
    """Editable profile fields. Totals are derived and never accepted here."""
    full_name: Optional[str] = None
    phone: Optional[str] = None
    national_id: Optional[str] = None
    address: Optional[str] = None
    monthly_savings_target: Optional[Decimal] = Field(None, description="Expected monthly deposit")


class MemberStatusUpdate(BaseModel):
    status: MemberStatus
    reason: Optional[str] = None


class StatementLine(BaseModel):
    id: UUID
    transaction_date: date
    transaction_type: TransactionType
    amount: Decimal
    balance: Decimal
    description: Optional[str] = None
    receipt_number: Optional[str] = None


class MemberStatementResponse(BaseModel):
    member: MemberResponse
    lines: List[StatementLine]
    closing_balance: Decimal

    @classmethod
    def from_statement(cls, statement):
        return cls(
            member=MemberResponse.model_validate(statement.member),
            lines=[
                StatementLine(
                    id=txn.id,
                    transaction_date=txn.transaction_date,
                    transaction_type=txn.transaction_type,
                    amount=txn.amount,
                    balance=balance,
                    description=txn.description,
                    receipt_number=txn.receipt_number,
                )
                for txn, balance in statement.lines
            ],
            closing_balance=statement.closing_balance,
        )
