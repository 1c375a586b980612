"""
Database engine and session handling.

The app builds one engine at startup from Settings.database_url and keeps it
on app.state; tests build their own against in-memory SQLite.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vorniq.config import normalize_database_url
from vorniq.db_base import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    url = normalize_database_url(database_url)
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, or every session sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
    else:
        engine = create_engine(url, pool_pre_ping=True)
    logger.info("Database engine created", extra={"dialect": engine.dialect.name})
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine) -> None:
    import vorniq.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=engine)
