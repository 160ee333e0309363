# gatekeeper/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy against the gatekeeper schema. All models are imported in
create_tables() so one call creates every table.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from gatekeeper.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    options = {
        "pool_pre_ping": True,            # Auto-reconnect if DB connection drops
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT_SEC,
    }
    if url.startswith("mysql"):
        options["connect_args"] = {"connect_timeout": settings.DB_CONNECT_TIMEOUT_SEC}
    return options


engine = create_engine(settings.DATABASE_URL, echo=False, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    import gatekeeper.models  # noqa

    Base.metadata.create_all(bind=bind or engine)
