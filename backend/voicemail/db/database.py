from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
import os

DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///./voicemail.db')


def make_engine(url: str):
    if not url.startswith('sqlite'):
        return create_engine(url, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ('sqlite://', 'sqlite:///:memory:'):
        # in-memory: every session must share the one connection that holds the tables
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def ensure_schema(bind=None):
    """Create missing tables. Columns are never altered; drop the SQLite file after a model change."""
    from ..models import email_model  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)

ensure_schema()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
