# gatehouse/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy (SQLite locally, PostgreSQL in production). All models are
auto-imported here so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from gatehouse.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,   # Auto-reconnect if DB connection drops
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    **_engine_options(settings.DATABASE_URL),
)

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
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from gatehouse.models.tenant import Tenant               # noqa
    from gatehouse.models.profile import Profile             # noqa
    from gatehouse.models.driver import Driver               # noqa
    from gatehouse.models.entry import Entry                 # noqa
    from gatehouse.models.occurrence import Occurrence       # noqa

    Base.metadata.create_all(bind=bind or engine)
