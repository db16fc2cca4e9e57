# clinic_scheduler/database.py
from __future__ import annotations
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .config import settings

Base = declarative_base()


def build_engine(url: str) -> Engine:
    """
    Engine for the SQL store backend. SQLite (file or :memory:) and
    Postgres-like servers need different pool options.
    """
    if not url:
        raise RuntimeError("STORE_URL is not configured (check your .env).")

    if url.startswith("sqlite"):
        connect_args = {
            "check_same_thread": False,  # FastAPI serves requests from a thread pool
            "timeout": settings.STORE_TIMEOUT_SECONDS,
        }
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # One shared connection, otherwise every session sees an empty database
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool, future=True)
        return create_engine(url, connect_args=connect_args, pool_pre_ping=True, future=True)

    # Postgres or other servers
    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        future=True,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        future=True,
    )


def init_db(engine: Engine) -> None:
    """
    Creates the tables if they do not exist. Models are imported first so
    SQLAlchemy knows every table's metadata.
    """
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
