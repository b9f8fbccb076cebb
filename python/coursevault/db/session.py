"""Database sessions.

- create_session_factory / get_session_factory: sessionmaker bound to an engine
- get_db: request-scoped session (FastAPI dependency)
- session_scope: a session for work outside a request, such as user
  bootstrap in the auth middleware
- transaction: commit on success, roll back on error

Sessions never expire attributes on commit, so ORM rows can be converted
to response models after the transaction that loaded them has ended.
"""

from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from coursevault.db.engine import get_engine

SessionFactory = Callable[[], Session]

_default_factory: sessionmaker[Session] | None = None


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> sessionmaker[Session]:
    """The process-wide factory, bound to the engine from DATABASE_URL."""
    global _default_factory
    if _default_factory is None:
        _default_factory = create_session_factory()
    return _default_factory


def get_db() -> Generator[Session, None, None]:
    """Yield a session for one request and close it afterwards."""
    with get_session_factory()() as db:
        yield db


@contextmanager
def session_scope(factory: SessionFactory | None = None) -> Iterator[Session]:
    """Open a session from `factory` (default: the process-wide one) and close it."""
    db = (factory or get_session_factory())()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[None]:
    """Commit the work done in the block, or roll it back and re-raise.

    Usage:
        with transaction(db):
            db.add(User(id=user_id))
    """
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise
