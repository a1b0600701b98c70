"""Loan terms validation, lifecycle edges and approval-time fields."""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from cbo.core.exceptions import InvalidTransition, ValidationError
from cbo.models.transaction import LoanStatus
from cbo.services.loan_rules import (
    add_months,
    compute_total_amount_due,
    ensure_transition,
    interest_breakdown,
    on_status_change,
    outstanding_balance,
    validate_loan_terms,
)


def make_loan(amount="10000", rate="10", months=12, status=LoanStatus.PENDING, paid="0"):
    return SimpleNamespace(
        amount=Decimal(amount),
        interest_rate=Decimal(rate),
        duration_months=months,
        status=status,
        total_amount_due=None,
        balance=None,
        amount_paid=Decimal(paid),
        approval_date=None,
        due_date=None,
    )


class TestValidateLoanTerms:
    def test_accepts_valid_terms(self):
        validate_loan_terms(Decimal("10000"), Decimal("10"), 12, "School fees")
        validate_loan_terms(Decimal("1"), Decimal("0"), 1, "x")
        validate_loan_terms(Decimal("1"), Decimal("100"), 1, "x")

    @pytest.mark.parametrize("amount, rate, months, purpose", [
        (Decimal("0"), Decimal("10"), 12, "fees"),
        (Decimal("-5"), Decimal("10"), 12, "fees"),
        (Decimal("100"), Decimal("-1"), 12, "fees"),
        (Decimal("100"), Decimal("100.01"), 12, "fees"),
        (Decimal("100"), Decimal("10"), 0, "fees"),
        (Decimal("100"), Decimal("10"), 12, "   "),
        (Decimal("100"), Decimal("10"), 12, None),
    ])
    def test_rejects_invalid_terms(self, amount, rate, months, purpose):
        with pytest.raises(ValidationError):
            validate_loan_terms(amount, rate, months, purpose)


class TestTransitions:
    @pytest.mark.parametrize("old, new", [
        (LoanStatus.PENDING, LoanStatus.APPROVED),
        (LoanStatus.APPROVED, LoanStatus.DISBURSED),
        (LoanStatus.APPROVED, LoanStatus.DEFAULTED),
        (LoanStatus.DISBURSED, LoanStatus.COMPLETED),
        (LoanStatus.DISBURSED, LoanStatus.DEFAULTED),
    ])
    def test_allowed(self, old, new):
        ensure_transition(old, new)

    @pytest.mark.parametrize("old, new", [
        (LoanStatus.APPROVED, LoanStatus.APPROVED),
        (LoanStatus.PENDING, LoanStatus.DISBURSED),
        (LoanStatus.COMPLETED, LoanStatus.DEFAULTED),
        (LoanStatus.DEFAULTED, LoanStatus.APPROVED),
    ])
    def test_rejected(self, old, new):
        with pytest.raises(InvalidTransition) as excinfo:
            ensure_transition(old, new)
        assert excinfo.value.current_status == old


class TestApprovalFields:
    def test_total_amount_due_is_simple_interest(self):
        assert compute_total_amount_due(Decimal("10000"), Decimal("10")) == Decimal("11000.00")
        assert compute_total_amount_due(Decimal("333.33"), Decimal("7.5")) == Decimal("358.33")

    def test_approval_sets_total_balance_and_due_date(self):
        loan = make_loan()
        fired = on_status_change(loan, LoanStatus.PENDING, LoanStatus.APPROVED, today=date(2025, 1, 15))

        assert fired is True
        assert loan.total_amount_due == Decimal("11000.00")
        assert loan.balance == Decimal("11000.00")
        assert loan.approval_date == date(2025, 1, 15)
        assert loan.due_date == date(2026, 1, 15)

    def test_due_date_clamps_to_month_end(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_other_transitions_leave_fields_alone(self):
        loan = make_loan()
        on_status_change(loan, LoanStatus.PENDING, LoanStatus.APPROVED, today=date(2025, 1, 15))
        loan.interest_rate = Decimal("50")

        assert on_status_change(loan, LoanStatus.APPROVED, LoanStatus.APPROVED, today=date(2025, 6, 1)) is False
        assert on_status_change(loan, LoanStatus.APPROVED, LoanStatus.DISBURSED, today=date(2025, 6, 1)) is False
        assert loan.total_amount_due == Decimal("11000.00")
        assert loan.due_date == date(2026, 1, 15)

    def test_outstanding_balance(self):
        assert outstanding_balance(None, Decimal("0")) is None
        assert outstanding_balance(Decimal("11000"), Decimal("7000")) == Decimal("4000.00")


class TestInterestBreakdown:
    @pytest.mark.parametrize("paid, received, outstanding", [
        ("0", "0.00", "1000.00"),
        ("4000", "0.00", "1000.00"),
        ("10500", "500.00", "500.00"),
        ("11000", "1000.00", "0.00"),
    ])
    def test_principal_is_repaid_first(self, paid, received, outstanding):
        loan = make_loan(paid=paid)
        loan.total_amount_due = Decimal("11000.00")

        breakdown = interest_breakdown(loan)

        assert breakdown.interest_amount == Decimal("1000.00")
        assert breakdown.interest_received == Decimal(received)
        assert breakdown.interest_outstanding == Decimal(outstanding)

    def test_unapproved_loan_has_no_interest(self):
        breakdown = interest_breakdown(make_loan())
        assert breakdown.interest_amount == Decimal("0.00")
