import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from stockledger.config import settings
from stockledger.services.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    kwargs = {"pool_pre_ping": True, "echo": settings.DEBUG}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


# Create engine
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """
    Run one business event inside a single transaction.

    Commits when the block finishes and rolls back on any exception, so a
    sale, purchase or adjustment is either fully applied or not at all.
    Services only flush; this is the one place that commits.
    """
    try:
        yield db
        db.commit()
    except (ValidationError, NotFoundError, ConflictError):
        # Business rejections are reported by the caller
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception("Business event rolled back")
        raise
