from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from cbo.models.transaction import LoanStatus, PaymentMethod


class LoanApplication(BaseModel):
    member_id: UUID
    amount: Decimal = Field(..., description="Principal requested")
    interest_rate: Optional[Decimal] = Field(None, description="Flat rate in percent over the whole term; defaults to the configured rate")
    duration_months: int = Field(..., description="Term in months")
    purpose: str


class LoanPaymentCreate(BaseModel):
    amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: Optional[date] = Field(None, description="Defaults to today")
    receipt_number: Optional[str] = None
    notes: Optional[str] = None


class LoanPaymentUpdate(BaseModel):
    amount: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None


class LoanPaymentResponse(BaseModel):
    id: UUID
    loan_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LoanResponse(BaseModel):
    id: UUID
    loan_number: str
    member_id: UUID
    amount: Decimal
    interest_rate: Decimal
    duration_months: int
    purpose: str
    status: LoanStatus
    application_date: date
    approval_date: Optional[date] = None
    disbursement_date: Optional[date] = None
    due_date: Optional[date] = None
    total_amount_due: Optional[Decimal] = None
    amount_paid: Decimal
    balance: Optional[Decimal] = None
    approved_by: Optional[UUID] = None

    class Config:
        from_attributes = True


class LoanDetailResponse(LoanResponse):
    payments: List[LoanPaymentResponse] = []
