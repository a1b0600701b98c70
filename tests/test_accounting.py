"""Organization summary and interest report."""
from datetime import date
from decimal import Decimal

import pytest

from cbo.core.exceptions import Unauthorized
from cbo.models.member import MemberStatus
from cbo.models.transaction import TransactionType
from cbo.services.accounting import get_interest_report, get_organization_summary
from cbo.services.loan import apply_for_loan, approve_loan, record_loan_payment
from cbo.services.member import change_member_status
from cbo.services.savings import record_savings_transaction


@pytest.fixture
def portfolio(db, admin, treasurer, member_actor, other_member):
    record_savings_transaction(db, treasurer, member_actor.member_id, Decimal("1200"), TransactionType.DEPOSIT)
    record_savings_transaction(db, treasurer, other_member.member_id, Decimal("800"), TransactionType.DEPOSIT)

    big = apply_for_loan(db, member_actor, member_actor.member_id, Decimal("10000"), 12, "Shop", interest_rate=Decimal("10"))
    approve_loan(db, treasurer, big.id, today=date(2025, 1, 1))
    record_loan_payment(db, treasurer, big.id, Decimal("10500"))

    small = apply_for_loan(db, other_member, other_member.member_id, Decimal("1000"), 3, "Seeds", interest_rate=Decimal("20"))
    approve_loan(db, treasurer, small.id, today=date(2025, 2, 1))
    record_loan_payment(db, treasurer, small.id, Decimal("400"))

    apply_for_loan(db, other_member, other_member.member_id, Decimal("5000"), 6, "Still pending")

    change_member_status(db, admin, other_member.member_id, MemberStatus.SUSPENDED)
    return big, small


def test_summary(db, member_actor, portfolio):
    summary = get_organization_summary(db, member_actor)

    # admin, treasurer, member, other: four registered members
    assert summary.total_members == 4
    assert summary.active_members == 3
    assert summary.total_savings == Decimal("2000.00")
    assert summary.active_loans == 2
    assert summary.active_loan_amount == Decimal("11000.00")
    assert summary.loan_count == 3
    assert summary.total_loan_amount == Decimal("16000.00")
    assert summary.total_paid == Decimal("10900.00")
    # 11000 - 10500 + 1200 - 400; the pending loan has no balance yet
    assert summary.total_outstanding == Decimal("1300.00")


def test_interest_report(db, member_actor, portfolio):
    big, small = portfolio
    report = get_interest_report(db, member_actor)

    by_number = {line.loan_number: line for line in report.lines}
    assert set(by_number) == {big.loan_number, small.loan_number}

    big_line = by_number[big.loan_number]
    assert big_line.interest.interest_amount == Decimal("1000.00")
    assert big_line.interest.interest_received == Decimal("500.00")
    assert big_line.full_name == "Mary Member"
    assert not big_line.fully_paid

    small_line = by_number[small.loan_number]
    assert small_line.interest.interest_amount == Decimal("200.00")
    assert small_line.interest.interest_received == Decimal("0.00")

    assert report.total_interest_earned == Decimal("500.00")
    assert report.total_interest_pending == Decimal("700.00")
    assert report.total_interest == Decimal("1200.00")


def test_reports_need_authentication(db):
    with pytest.raises(Unauthorized):
        get_organization_summary(db, None)
