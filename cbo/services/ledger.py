"""Savings ledger replay.

Pure computation over transaction histories: no session, no side effects.
Works with ORM rows or any object exposing ``amount``, ``transaction_type``,
``transaction_date`` and (optionally) ``entry_number`` / ``created_at``.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from cbo.models.transaction import TransactionType

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(amount) -> Decimal:
    """Round to two decimal places (half up). None counts as zero."""
    if amount is None:
        return ZERO
    return Decimal(str(amount)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def signed_amount(transaction) -> Decimal:
    """Deposits count positive, withdrawals negative."""
    amount = to_money(transaction.amount)
    if TransactionType(transaction.transaction_type) == TransactionType.WITHDRAWAL:
        return -amount
    return amount


def chronological_key(transaction) -> Tuple:
    """Sort key: transaction date, then per-member entry number, then creation time."""
    entry_number = getattr(transaction, "entry_number", None)
    created_at: Optional[datetime] = getattr(transaction, "created_at", None)
    txn_date: date = transaction.transaction_date or date.min
    return (
        txn_date,
        entry_number if entry_number is not None else 0,
        created_at or datetime.min,
    )


def running_balance(transactions: Iterable) -> List[Tuple[object, Decimal]]:
    """Replay transactions in chronological order.

    Returns ``(transaction, balance_after)`` pairs in replay order.
    """
    balance = ZERO
    lines = []
    for transaction in sorted(transactions, key=chronological_key):
        balance = balance + signed_amount(transaction)
        lines.append((transaction, balance))
    return lines


def final_balance(lines: List[Tuple[object, Decimal]]) -> Decimal:
    """Balance after the last replayed line (0.00 for an empty history)."""
    if not lines:
        return ZERO
    return lines[-1][1]


def savings_balance(transactions: Iterable) -> Decimal:
    return final_balance(running_balance(transactions))


def sum_amounts(records: Iterable) -> Decimal:
    """Sum of ``amount`` over records (payments), rounded."""
    return to_money(sum((to_money(r.amount) for r in records), ZERO))
