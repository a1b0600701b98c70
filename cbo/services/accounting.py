"""Organization-wide figures: loan portfolio summary and interest earned."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from cbo.models.member import Member, MemberStatus
from cbo.models.transaction import Loan, LoanStatus
from cbo.services.ledger import ZERO, to_money
from cbo.services.loan_rules import ACTIVE_STATUSES, InterestBreakdown, interest_breakdown
from cbo.services.rbac import Actor, Operation, ensure_authorized

# Loans that carry interest: anything that was ever approved.
INTEREST_BEARING_STATUSES = (
    LoanStatus.APPROVED,
    LoanStatus.DISBURSED,
    LoanStatus.COMPLETED,
    LoanStatus.DEFAULTED,
)


@dataclass
class OrganizationSummary:
    total_members: int
    active_members: int
    total_savings: Decimal
    active_loans: int
    active_loan_amount: Decimal
    loan_count: int
    total_loan_amount: Decimal
    total_paid: Decimal
    total_outstanding: Decimal


@dataclass
class LoanInterestLine:
    loan_id: UUID
    loan_number: str
    member_number: Optional[str]
    full_name: Optional[str]
    amount: Decimal
    interest_rate: Decimal
    total_amount_due: Decimal
    amount_paid: Decimal
    status: LoanStatus
    interest: InterestBreakdown

    @property
    def fully_paid(self) -> bool:
        return to_money(self.amount_paid) >= to_money(self.total_amount_due)


@dataclass
class InterestReport:
    lines: List[LoanInterestLine] = field(default_factory=list)
    total_interest_earned: Decimal = ZERO
    total_interest_pending: Decimal = ZERO

    @property
    def total_interest(self) -> Decimal:
        return self.total_interest_earned + self.total_interest_pending


def _money_sum(values) -> Decimal:
    return to_money(sum((to_money(v) for v in values), ZERO))


def get_organization_summary(db: Session, actor: Actor) -> OrganizationSummary:
    """Totals over stored derived fields. Savings come from members' total_savings."""
    ensure_authorized(actor, Operation.READ_REPORTS)

    members = db.query(Member.status, Member.total_savings).all()
    loans = db.query(Loan.amount, Loan.amount_paid, Loan.balance, Loan.status).all()
    active_loans = [loan for loan in loans if LoanStatus(loan.status) in ACTIVE_STATUSES]

    return OrganizationSummary(
        total_members=len(members),
        active_members=sum(1 for m in members if MemberStatus(m.status) == MemberStatus.ACTIVE),
        total_savings=_money_sum(m.total_savings for m in members),
        active_loans=len(active_loans),
        active_loan_amount=_money_sum(loan.amount for loan in active_loans),
        loan_count=len(loans),
        total_loan_amount=_money_sum(loan.amount for loan in loans),
        total_paid=_money_sum(loan.amount_paid for loan in loans),
        total_outstanding=_money_sum(loan.balance for loan in loans),
    )


def get_interest_report(db: Session, actor: Actor) -> InterestReport:
    """Interest due, received and pending for each loan that has been approved."""
    ensure_authorized(actor, Operation.READ_REPORTS)

    loans = db.query(Loan).filter(
        Loan.status.in_(INTEREST_BEARING_STATUSES)
    ).order_by(Loan.approval_date.desc(), Loan.loan_number.desc()).all()

    report = InterestReport()
    for loan in loans:
        breakdown = interest_breakdown(loan)
        report.lines.append(LoanInterestLine(
            loan_id=loan.id,
            loan_number=loan.loan_number,
            member_number=loan.member.member_number if loan.member else None,
            full_name=loan.member.full_name if loan.member else None,
            amount=to_money(loan.amount),
            interest_rate=loan.interest_rate,
            total_amount_due=to_money(loan.total_amount_due),
            amount_paid=to_money(loan.amount_paid),
            status=loan.status,
            interest=breakdown,
        ))

    report.total_interest_earned = _money_sum(line.interest.interest_received for line in report.lines)
    report.total_interest_pending = _money_sum(line.interest.interest_outstanding for line in report.lines)
    return report
