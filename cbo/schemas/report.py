from pydantic import BaseModel
from typing import List, Optional
from decimal import Decimal
from uuid import UUID
from cbo.models.transaction import LoanStatus


class OrganizationSummaryResponse(BaseModel):
    total_members: int
    active_members: int
    total_savings: Decimal
    active_loans: int
    active_loan_amount: Decimal
    loan_count: int
    total_loan_amount: Decimal
    total_paid: Decimal
    total_outstanding: Decimal

    class Config:
        from_attributes = True


class InterestLineResponse(BaseModel):
    loan_id: UUID
    loan_number: str
    member_number: Optional[str] = None
    full_name: Optional[str] = None
    amount: Decimal
    interest_rate: Decimal
    total_amount_due: Decimal
    amount_paid: Decimal
    status: LoanStatus
    interest_amount: Decimal
    interest_received: Decimal
    interest_outstanding: Decimal
    fully_paid: bool


class InterestReportResponse(BaseModel):
    lines: List[InterestLineResponse]
    total_interest_earned: Decimal
    total_interest_pending: Decimal
    total_interest: Decimal

    @classmethod
    def from_report(cls, report):
        return cls(
            lines=[
                InterestLineResponse(
                    loan_id=line.loan_id,
                    loan_number=line.loan_number,
                    member_number=line.member_number,
                    full_name=line.full_name,
                    amount=line.amount,
                    interest_rate=line.interest_rate,
                    total_amount_due=line.total_amount_due,
                    amount_paid=line.amount_paid,
                    status=line.status,
                    interest_amount=line.interest.interest_amount,
                    interest_received=line.interest.interest_received,
                    interest_outstanding=line.interest.interest_outstanding,
                    fully_paid=line.fully_paid,
                )
                for line in report.lines
            ],
            total_interest_earned=report.total_interest_earned,
            total_interest_pending=report.total_interest_pending,
            total_interest=report.total_interest,
        )
