from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


logger = logging.getLogger(__name__)

_IN_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def create_db_engine(db_url: str) -> Engine:
    """
    Build the engine for the configured URL.

    In-memory SQLite uses a single shared connection so every session sees the
    same database. That connection is not safe under concurrent requests, so
    in-memory URLs are meant for tests only.
    """

    if not db_url.startswith("sqlite"):
        return create_engine(db_url, pool_pre_ping=True)

    if db_url in _IN_MEMORY_URLS:
        logger.warning("In-memory SQLite shares one connection across threads; use it for tests only")
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(db_url, connect_args={"check_same_thread": False})


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)
