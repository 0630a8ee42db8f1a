import os
from contextlib import contextmanager
from typing import Generator, Callable, Iterator, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
import sqlalchemy.exc as sa_exc

POSTGRES_HOST = os.environ.get("POSTGRES_HOST", "localhost")
POSTGRES_PORT = os.environ.get("POSTGRES_PORT", "5432")
POSTGRES_USER = os.environ.get("POSTGRES_USER")
POSTGRES_PASSWORD = os.environ.get("POSTGRES_PASSWORD")
POSTGRES_DB = os.environ.get("POSTGRES_DB")

DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"postgresql+psycopg2://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "future": True}
    return {
        "poolclass": QueuePool,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,     # 30 min - protects against idle disconnects
        "pool_pre_ping": True,    # avoids stale connections
        "pool_use_lifo": True,
        "future": True,
    }


_engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal: Callable[[], Session] = sessionmaker(
    bind=_engine,
    autocommit=False,
    expire_on_commit=False,  # DTOs are built after commit
    autoflush=False,
    class_=Session
)


def _get_db(session_factory: Optional[Callable[[], Session]] = None) -> Generator[Session, None, None]:
    """
    Internal database session generator with transaction management.

    Handles:
    - Session creation and cleanup
    - Automatic commit on success
    - Rollback on exceptions
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db

        # Only commit if we have an open transaction
        if db.in_transaction():
            db.commit()
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency: provides a database session.

    Usage:
        @router.get("/conversations")
        async def list_conversations(db: Session = Depends(get_db)):
            ...
    """
    try:
        yield from _get_db()
    except sa_exc.TimeoutError as e:  # QueuePool acquisition timed out
        # Import here to avoid circular dependency
        from mercadito_backend.exceptions import ServiceUnavailableException
        raise ServiceUnavailableException(
            detail="Database is busy. Please retry shortly.",
            headers={"Retry-After": "2"}
        ) from e


@contextmanager
def session_scope(session_factory: Optional[Callable[[], Session]] = None) -> Iterator[Session]:
    """
    Transactional session for code running outside a request (websocket
    handlers, startup tasks). Commits on success, rolls back on error.

    Usage:
        with session_scope() as db:
            db.add(entity)
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db

        if db.in_transaction():
            db.commit()
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()
