"""Sessions: the factory on app.state, the per-request dependency and a commit helper.

The app keeps its sessionmaker on app.state.session_factory rather than a
module global, so tests and the chat stream's background persistence can
each open sessions bound to the same (possibly in-memory) database.
"""

from collections.abc import Generator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from blueberry.db.engine import get_engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Sessionmaker bound to `engine`, or to the DATABASE_URL engine.

    Objects stay loaded after commit so services can serialize them without
    another round trip.
    """
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


def get_db(request: Request) -> Generator[Session, None, None]:
    """Route dependency: one session per request, closed when the response is done."""
    db = get_session_factory(request)()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """Commit the work done in the block, or roll it back and re-raise.

        with transaction(db):
            db.add(highlight)
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
