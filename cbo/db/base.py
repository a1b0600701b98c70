import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from cbo.core.config import settings
from cbo.core.exceptions import CBOError, ConsistencyFailure

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """Commit everything done inside the block, or nothing.

    A child-record write and the recompute of its parent's derived fields
    must run inside the same block. Core failures roll back and propagate
    unchanged; database failures roll back and surface as ConsistencyFailure.
    """
    try:
        yield db
        db.commit()
    except CBOError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Unit of work rolled back: {e}", exc_info=True)
        raise ConsistencyFailure(f"Write could not be committed atomically: {e}") from e
    except Exception:
        db.rollback()
        raise
