import logging
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from cbo.core.config import settings
from cbo.models.system import NumberSequence

logger = logging.getLogger(__name__)

MEMBER_SEQUENCE = "member"


def next_value(db: Session, name: str) -> int:
    """Allocate the next value of a named counter inside the caller's transaction.

    The increment is a single UPDATE, so the counter row stays locked until
    the caller commits; a concurrent allocator waits and then sees the new
    value. Does not commit.
    """
    exists = db.query(NumberSequence.name).filter(NumberSequence.name == name).first()
    if exists is None:
        # A concurrent creator makes this flush fail with IntegrityError,
        # which the caller's unit of work turns into a failed operation.
        db.add(NumberSequence(name=name, value=0))
        db.flush()

    db.execute(
        update(NumberSequence)
        .where(NumberSequence.name == name)
        .values(value=NumberSequence.value + 1)
        .execution_options(synchronize_session=False)
    )
    value = db.query(NumberSequence.value).filter(NumberSequence.name == name).scalar()
    logger.debug(f"Allocated {name} #{value}")
    return value


def format_member_number(sequence: int) -> str:
    return f"{settings.MEMBER_NUMBER_PREFIX}{sequence:04d}"


def format_loan_number(year: int, sequence: int) -> str:
    return f"{settings.LOAN_NUMBER_PREFIX}{year}{sequence:04d}"


def next_member_number(db: Session) -> str:
    return format_member_number(next_value(db, MEMBER_SEQUENCE))


def next_loan_number(db: Session, on: Optional[date] = None) -> str:
    """Loan numbers restart at 0001 every calendar year."""
    year = (on or date.today()).year
    return format_loan_number(year, next_value(db, f"loan:{year}"))
