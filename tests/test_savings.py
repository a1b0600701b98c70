"""Savings transactions keep the member's total_savings equal to the replayed history."""
import uuid
from datetime import date
from decimal import Decimal

import pytest

from cbo.core.exceptions import ConsistencyFailure, NotFound, Unauthorized, ValidationError
from cbo.models.member import Member, MemberStatus
from cbo.models.transaction import SavingsTransaction, TransactionType
from cbo.services.ledger import signed_amount
from cbo.services.member import change_member_status
from cbo.services.savings import (
    delete_savings_transaction,
    list_savings_transactions,
    record_savings_transaction,
    update_savings_transaction,
)

DEPOSIT = TransactionType.DEPOSIT
WITHDRAWAL = TransactionType.WITHDRAWAL


def total_savings(db, member_id):
    db.expire_all()
    return db.get(Member, member_id).total_savings


def signed_sum(db, member_id):
    rows = db.query(SavingsTransaction).filter(SavingsTransaction.member_id == member_id).all()
    return sum((signed_amount(r) for r in rows), Decimal("0.00"))


class TestRecord:
    def test_deposit_then_withdrawal(self, db, treasurer, member_actor):
        member_id = member_actor.member_id
        first = record_savings_transaction(db, treasurer, member_id, Decimal("1000"), DEPOSIT, receipt_number="R-1")
        second = record_savings_transaction(db, treasurer, member_id, Decimal("300"), WITHDRAWAL)

        assert total_savings(db, member_id) == Decimal("700.00")
        assert first.balance_after == Decimal("1000.00")
        assert second.balance_after == Decimal("700.00")
        assert (first.entry_number, second.entry_number) == (1, 2)
        assert second.recorded_by == treasurer.user_id

    def test_member_records_own_deposit(self, db, member_actor):
        record_savings_transaction(db, member_actor, member_actor.member_id, Decimal("50"), DEPOSIT)
        assert total_savings(db, member_actor.member_id) == Decimal("50.00")

    def test_member_cannot_record_for_someone_else(self, db, member_actor, other_member):
        with pytest.raises(Unauthorized):
            record_savings_transaction(db, member_actor, other_member.member_id, Decimal("50"), DEPOSIT)
        assert total_savings(db, other_member.member_id) == Decimal("0.00")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10"), None, Decimal("0.004"), Decimal("0.001")])
    def test_amount_must_be_positive(self, db, treasurer, member_actor, amount):
        with pytest.raises(ValidationError):
            record_savings_transaction(db, treasurer, member_actor.member_id, amount, DEPOSIT)

    def test_unknown_type_is_rejected(self, db, treasurer, member_actor):
        with pytest.raises(ValidationError):
            record_savings_transaction(db, treasurer, member_actor.member_id, Decimal("10"), "interest")

    def test_overdraw_is_rejected_and_rolled_back(self, db, treasurer, member_actor):
        member_id = member_actor.member_id
        record_savings_transaction(db, treasurer, member_id, Decimal("100"), DEPOSIT)

        with pytest.raises(ValidationError):
            record_savings_transaction(db, treasurer, member_id, Decimal("100.01"), WITHDRAWAL)

        assert total_savings(db, member_id) == Decimal("100.00")
        assert db.query(SavingsTransaction).filter(SavingsTransaction.member_id == member_id).count() == 1

    def test_inactive_member_cannot_save(self, db, admin, treasurer, member_actor):
        change_member_status(db, admin, member_actor.member_id, MemberStatus.SUSPENDED, reason="arrears")
        with pytest.raises(ValidationError):
            record_savings_transaction(db, treasurer, member_actor.member_id, Decimal("10"), DEPOSIT)

    def test_unknown_member(self, db, treasurer):
        with pytest.raises(NotFound):
            record_savings_transaction(db, treasurer, uuid.uuid4(), Decimal("10"), DEPOSIT)

    def test_backdated_entry_replays_in_date_order(self, db, treasurer, member_actor):
        member_id = member_actor.member_id
        later = record_savings_transaction(
            db, treasurer, member_id, Decimal("500"), DEPOSIT, transaction_date=date(2025, 2, 1)
        )
        earlier = record_savings_transaction(
            db, treasurer, member_id, Decimal("200"), DEPOSIT, transaction_date=date(2025, 1, 1)
        )
        db.expire_all()

        assert earlier.balance_after == Decimal("200.00")
        assert later.balance_after == Decimal("700.00")
        assert total_savings(db, member_id) == Decimal("700.00")


class TestCorrections:
    def test_update_recomputes(self, db, treasurer, member_actor):
        member_id = member_actor.member_id
        deposit = record_savings_transaction(db, treasurer, member_id, Decimal("1000"), DEPOSIT)
        record_savings_transaction(db, treasurer, member_id, Decimal("200"), WITHDRAWAL)

        update_savings_transaction(db, treasurer, deposit.id, amount=Decimal("1500"))

        assert total_savings(db, member_id) == Decimal("1300.00")

    def test_update_that_would_overdraw_is_rejected(self, db, treasurer, member_actor):
        member_id = member_actor.member_id
        deposit = record_savings_transaction(db, treasurer, member_id, Decimal("1000"), DEPOSIT)
        record_savings_transaction(db, treasurer, member_id, Decimal("800"), WITHDRAWAL)

        with pytest.raises(ValidationError):
            update_savings_transaction(db, treasurer, deposit.id, amount=Decimal("500"))
        assert total_savings(db, member_id) == Decimal("200.00")

    def test_member_cannot_correct(self, db, treasurer, member_actor):
        deposit = record_savings_transaction(db, member_actor, member_actor.member_id, Decimal("10"), DEPOSIT)
        with pytest.raises(Unauthorized):
            update_savings_transaction(db, member_actor, deposit.id, amount=Decimal("1000"))
        with pytest.raises(Unauthorized):
            delete_savings_transaction(db, member_actor, deposit.id)

    def test_derived_fields_are_not_editable(self, db, treasurer, member_actor):
        deposit = record_savings_transaction(db, treasurer, member_actor.member_id, Decimal("10"), DEPOSIT)
        with pytest.raises(ValidationError):
            update_savings_transaction(db, treasurer, deposit.id, balance_after=Decimal("99"))

    def test_delete_recomputes(self, db, treasurer, member_actor):
        member_id = member_actor.member_id
        record_savings_transaction(db, treasurer, member_id, Decimal("400"), DEPOSIT)
        extra = record_savings_transaction(db, treasurer, member_id, Decimal("250"), DEPOSIT)

        member = delete_savings_transaction(db, treasurer, extra.id)

        assert member.total_savings == Decimal("400.00")

    def test_delete_missing(self, db, treasurer):
        with pytest.raises(NotFound):
            delete_savings_transaction(db, treasurer, uuid.uuid4())


def test_total_always_matches_history(db, treasurer, member_actor):
    """Any sequence of inserts, updates and deletes leaves total == signed sum."""
    member_id = member_actor.member_id
    a = record_savings_transaction(db, treasurer, member_id, Decimal("1000"), DEPOSIT, transaction_date=date(2025, 1, 5))
    b = record_savings_transaction(db, treasurer, member_id, Decimal("125.50"), WITHDRAWAL, transaction_date=date(2025, 1, 5))
    c = record_savings_transaction(db, treasurer, member_id, Decimal("300"), DEPOSIT, transaction_date=date(2025, 1, 3))
    assert total_savings(db, member_id) == signed_sum(db, member_id)

    update_savings_transaction(db, treasurer, b.id, amount=Decimal("25.25"))
    assert total_savings(db, member_id) == signed_sum(db, member_id)

    update_savings_transaction(db, treasurer, c.id, transaction_type=WITHDRAWAL)
    assert total_savings(db, member_id) == signed_sum(db, member_id)

    update_savings_transaction(db, treasurer, c.id, transaction_type=DEPOSIT)
    delete_savings_transaction(db, treasurer, a.id)
    assert total_savings(db, member_id) == signed_sum(db, member_id) == Decimal("274.75")


def test_failed_write_keeps_neither_row_nor_total(db, treasurer, member_actor, monkeypatch):
    member_id = member_actor.member_id
    record_savings_transaction(db, treasurer, member_id, Decimal("100"), DEPOSIT)

    # A reused entry number violates the per-member unique constraint at flush.
    monkeypatch.setattr("cbo.services.savings._next_entry_number", lambda db, member_id: 1)
    with pytest.raises(ConsistencyFailure):
        record_savings_transaction(db, treasurer, member_id, Decimal("50"), DEPOSIT)

    assert total_savings(db, member_id) == Decimal("100.00")
    assert db.query(SavingsTransaction).filter(SavingsTransaction.member_id == member_id).count() == 1


def test_list_newest_first(db, treasurer, member_actor, other_member):
    record_savings_transaction(db, treasurer, member_actor.member_id, Decimal("1"), DEPOSIT, transaction_date=date(2025, 1, 1))
    record_savings_transaction(db, treasurer, member_actor.member_id, Decimal("2"), DEPOSIT, transaction_date=date(2025, 2, 1))
    record_savings_transaction(db, treasurer, other_member.member_id, Decimal("3"), DEPOSIT)

    mine = list_savings_transactions(db, member_actor, member_id=member_actor.member_id)

    assert [t.amount for t in mine] == [Decimal("2.00"), Decimal("1.00")]
    assert len(list_savings_transactions(db, member_actor)) == 3
