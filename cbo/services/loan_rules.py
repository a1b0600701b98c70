"""Loan accounting rules: lifecycle transitions and approval-time derived fields."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta

from cbo.core.exceptions import InvalidTransition, ValidationError
from cbo.models.transaction import LoanStatus
from cbo.services.ledger import ZERO, to_money

MAX_INTEREST_RATE = Decimal("100")

# Terminal states have no outgoing edges.
ALLOWED_TRANSITIONS = {
    LoanStatus.PENDING: {LoanStatus.APPROVED},
    LoanStatus.APPROVED: {LoanStatus.DISBURSED, LoanStatus.DEFAULTED},
    LoanStatus.DISBURSED: {LoanStatus.COMPLETED, LoanStatus.DEFAULTED},
    LoanStatus.COMPLETED: set(),
    LoanStatus.DEFAULTED: set(),
}

# Statuses in which a loan is live: payments accepted, counted in member totals.
ACTIVE_STATUSES = (LoanStatus.APPROVED, LoanStatus.DISBURSED)


@dataclass(frozen=True)
class InterestBreakdown:
    interest_amount: Decimal
    interest_received: Decimal
    interest_outstanding: Decimal


def validate_loan_terms(amount, interest_rate, duration_months, purpose) -> None:
    """Validate a loan application's terms; raises ValidationError."""
    if amount is None or to_money(amount) <= ZERO:
        raise ValidationError("Loan amount must be greater than 0")
    if interest_rate is None:
        raise ValidationError("Interest rate is required")
    rate = Decimal(str(interest_rate))
    if rate < ZERO or rate > MAX_INTEREST_RATE:
        raise ValidationError("Interest rate must be between 0 and 100")
    if duration_months is None or int(duration_months) != duration_months or duration_months < 1:
        raise ValidationError("Duration must be at least 1 month")
    if not purpose or not str(purpose).strip():
        raise ValidationError("Purpose is required")


def ensure_transition(old_status: LoanStatus, new_status: LoanStatus) -> None:
    """Raise InvalidTransition unless old -> new is an edge of the lifecycle."""
    old_status = LoanStatus(old_status)
    new_status = LoanStatus(new_status)
    if new_status not in ALLOWED_TRANSITIONS[old_status]:
        raise InvalidTransition(
            f"Cannot move loan from '{old_status.value}' to '{new_status.value}'",
            current_status=old_status,
            requested_status=new_status,
        )


def compute_total_amount_due(principal, interest_rate) -> Decimal:
    """Simple interest over the whole term: principal + principal * rate / 100."""
    principal = to_money(principal)
    rate = Decimal(str(interest_rate or 0))
    return to_money(principal + principal * rate / Decimal("100"))


def add_months(start: date, months: int) -> date:
    """Calendar-month arithmetic; day clamps to the end of shorter months."""
    return start + relativedelta(months=months)


def outstanding_balance(total_amount_due, amount_paid) -> Optional[Decimal]:
    if total_amount_due is None:
        return None
    return to_money(total_amount_due) - to_money(amount_paid)


def on_status_change(loan, old_status: LoanStatus, new_status: LoanStatus, today: Optional[date] = None) -> bool:
    """Apply approval-time derived fields to ``loan``.

    Fires only on entering APPROVED from another status. Returns True when
    fields were computed, False for every other transition (which leaves
    total_amount_due and due_date untouched).
    """
    if LoanStatus(new_status) != LoanStatus.APPROVED or LoanStatus(old_status) == LoanStatus.APPROVED:
        return False

    approval_date = today or date.today()
    loan.total_amount_due = compute_total_amount_due(loan.amount, loan.interest_rate)
    loan.balance = loan.total_amount_due
    loan.approval_date = approval_date
    loan.due_date = add_months(approval_date, loan.duration_months)
    return True


def interest_breakdown(loan) -> InterestBreakdown:
    """Split a loan's interest into received and outstanding parts.

    Payments are applied to principal first; anything beyond the principal
    counts as interest received.
    """
    if loan.total_amount_due is None:
        return InterestBreakdown(ZERO, ZERO, ZERO)
    principal = to_money(loan.amount)
    interest_amount = to_money(loan.total_amount_due) - principal
    paid_beyond_principal = max(to_money(loan.amount_paid) - principal, ZERO)
    interest_received = min(paid_beyond_principal, interest_amount)
    return InterestBreakdown(
        interest_amount=interest_amount,
        interest_received=interest_received,
        interest_outstanding=interest_amount - interest_received,
    )
