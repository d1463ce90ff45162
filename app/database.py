# app/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy (SQLite by default, any SQLAlchemy URL via DATABASE_URL).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import settings

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    # SQLite connections are shared across FastAPI worker threads
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    pool_pre_ping=True,          # Auto-reconnect if DB connection drops
    echo=False,                  # Set True to log all SQL queries (debug only)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from app.models.pass_log import PassLogEntry   # noqa
    from app.models.student import Student         # noqa

    Base.metadata.create_all(bind=bind or engine)
