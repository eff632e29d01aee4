"""
Database Configuration
Engine, session factory and transaction helpers
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from src.config.settings import settings
from src.utils.exceptions import PersistenceError
from src.utils.logger import setup_logger

logger = setup_logger()

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    pool_pre_ping=True,
    connect_args=connect_args
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """
    Request-scoped database session dependency

    Yields:
        Session: Database session, closed when the request ends
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    All-or-nothing unit of work on a session

    Commits when the block exits normally and rolls back on any exception.
    Driver errors are re-raised as PersistenceError. Nested blocks join
    the outermost one, which alone commits or rolls back.

    Args:
        db: Database session
    """
    depth = db.info.get("atomic_depth", 0)
    db.info["atomic_depth"] = depth + 1
    try:
        yield db
        if depth == 0:
            db.commit()
    except SQLAlchemyError as e:
        if depth > 0:
            raise
        db.rollback()
        logger.exception("Database write failed, transaction rolled back")
        raise PersistenceError(f"Database write failed: {e.__class__.__name__}") from e
    except Exception:
        if depth == 0:
            db.rollback()
        raise
    finally:
        db.info["atomic_depth"] = depth
