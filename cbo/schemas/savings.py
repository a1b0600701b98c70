from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from cbo.models.transaction import TransactionType


class SavingsTransactionCreate(BaseModel):
    member_id: UUID
    amount: Decimal = Field(..., description="Positive amount; direction comes from transaction_type")
    transaction_type: TransactionType
    transaction_date: Optional[date] = Field(None, description="Defaults to today")
    receipt_number: Optional[str] = None
    description: Optional[str] = None


class SavingsTransactionUpdate(BaseModel):
    amount: Optional[Decimal] = None
    transaction_type: Optional[TransactionType] = None
    transaction_date: Optional[date] = None
    receipt_number: Optional[str] = None
    description: Optional[str] = None


class SavingsTransactionResponse(BaseModel):
    id: UUID
    member_id: UUID
    amount: Decimal
    transaction_type: TransactionType
    transaction_date: date
    entry_number: int
    balance_after: Optional[Decimal] = None
    receipt_number: Optional[str] = None
    description: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True
