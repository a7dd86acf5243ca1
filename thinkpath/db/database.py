from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from thinkpath.db.models.base import Base

_engine: Engine | None = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def get_engine() -> Engine:
    """Get the database engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        configure_engine(
            create_engine(settings.database_url, echo=settings.log_level == "DEBUG", pool_pre_ping=True)
        )
    return _engine


def configure_engine(engine: Engine) -> None:
    """Bind the module session factory to an explicit engine."""
    global _engine
    _engine = engine
    SessionLocal.configure(bind=engine)


def init_db() -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables initialized")


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    get_engine()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()


class _SessionWrapper:
    """Context manager that lends out a caller-owned session untouched."""

    def __init__(self, session: Session):
        self.session = session

    def __enter__(self) -> Session:
        return self.session

    def __exit__(self, *args) -> None:
        pass


def session_or_scope(session: Session | None):
    """Use the caller's session when given, otherwise open a transactional scope."""
    if session is not None:
        return _SessionWrapper(session)
    return session_scope()
