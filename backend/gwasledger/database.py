# SPDX-License-Identifier: Apache-2.0
"""DB connection and session management."""
from __future__ import annotations

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from gwasledger.config import SQLITE_URL
from gwasledger.models import (  # noqa: F401 – register all models with SQLModel.metadata
    AnalysisResult,
    Dataset,
    DecryptionRequest,
    KeyValueEntry,
    LedgerEvent,
)


def make_engine(url: str):
    """SQLite needs cross-thread access; in-memory SQLite shares one connection."""
    if not url.startswith("sqlite"):
        return create_engine(url)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


engine = make_engine(SQLITE_URL)


def get_session():
    """Yield a DB session (for FastAPI Depends)."""
    with Session(engine) as session:
        yield session


def create_db_and_tables(bind=None):
    """Create all tables."""
    SQLModel.metadata.create_all(bind if bind is not None else engine)
