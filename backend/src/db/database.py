"""
Database connection and session management.

This module provides SQLAlchemy engine configuration for PostgreSQL (with
connection pooling) and SQLite (local development and tests).
"""

import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import Pool


# Load environment variables from .env file
# Look for .env in backend directory (parent of src)
env_path = Path(__file__).parent.parent.parent / '.env'
if env_path.exists():
    load_dotenv(dotenv_path=env_path)

# Database URL from environment variable
DATABASE_URL = os.environ.get(
    "TIMEKEEPER_DB_URL",
    "sqlite:///./timekeeper.db"
)


# Use different parameters for SQLite vs PostgreSQL
if DATABASE_URL.startswith("sqlite"):
    # SQLite doesn't support pool_size, max_overflow, or pool_recycle
    from sqlalchemy.pool import StaticPool
    engine = create_engine(
        DATABASE_URL,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
        echo=False,
        future=True
    )
else:
    # PostgreSQL with connection pooling
    engine = create_engine(
        DATABASE_URL,
        pool_size=20,          # Maximum connections in pool
        max_overflow=10,       # Additional connections beyond pool_size
        pool_pre_ping=True,    # Verify connections before checkout
        pool_recycle=3600,     # Recycle connections after 1 hour
        echo=False,            # Set to True for SQL debugging
        future=True            # Use SQLAlchemy 2.0 style
    )


# Session factory for creating database sessions
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True  # SQLAlchemy 2.0 style
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get database session.

    Yields:
        Session: SQLAlchemy database session

    Usage:
        @app.get("/series")
        async def list_series(db: Session = Depends(get_db)):
            return db.query(RecurringTemplate).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Enable foreign key enforcement on SQLite connections.

    CASCADE and SET NULL on templates, instances and locations rely on it.
    """
    if type(dbapi_conn).__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_db():
    """
    Initialize database tables.

    This should only be called during initial setup or testing.
    For production, use Alembic migrations instead.
    """
    from backend.src.models import Base
    Base.metadata.create_all(bind=engine)


def dispose_engine():
    """
    Dispose of the engine and close all connections.

    Useful for cleanup in CLI tools and tests.
    """
    engine.dispose()
