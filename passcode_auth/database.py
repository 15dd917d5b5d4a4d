import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from passcode_auth.errors import StorageFailure


def _build_database_url() -> str:
    raw_url = os.getenv("DATABASE_URL", "sqlite:///./passcode_auth.db")
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


def _create_engine(url: str):
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


DATABASE_URL = _build_database_url()
engine = _create_engine(DATABASE_URL)
SessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
)
Base = declarative_base()


def configure_engine(url: str):
    """Rebind the session factory to another database (tests, CLI tools)."""
    global engine
    engine.dispose()
    engine = _create_engine(url)
    SessionLocal.configure(bind=engine)
    return engine


def init_db() -> None:
    from passcode_auth.models.schema import otp as _otp  # noqa: F401
    from passcode_auth.models.schema import session as _session  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_db() -> None:
    Base.metadata.drop_all(bind=engine)


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise StorageFailure(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
