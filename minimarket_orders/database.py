"""
Database engine and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from minimarket_orders.config import settings


def build_engine(database_url: str):
    """Create an engine; SQLite connections are shared with worker threads"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create tables for all models"""
    from minimarket_orders import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """FastAPI dependency that yields a session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
