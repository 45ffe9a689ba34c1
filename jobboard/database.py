"""
ORM model and connection management for the jobs table.

The table itself is created by the migrations in ``jobboard/migrations``;
this module only maps it.
"""

from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy import create_engine, Column, Integer, String, DateTime
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def _utcnow() -> datetime:
    # naive UTC, same as the migration column type
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _same_as_created_at(context) -> datetime:
    # created_at precedes updated_at, so its default is already in the parameters
    return context.get_current_parameters()["created_at"]


class Job(Base):
    """Job listing."""

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True)
    location = Column(String)
    team = Column(String)
    job_title = Column(String)
    url = Column(String)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_same_as_created_at, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<Job id={self.id} job_title={self.job_title!r} team={self.team!r}>"


def sqlite_url(db_path: Path) -> str:
    """Build a SQLAlchemy URL for a SQLite database file."""
    return f"sqlite:///{db_path}"


def get_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    For file-backed SQLite databases the parent directory is created
    so a fresh checkout can migrate without any setup.

    Args:
        database_url: SQLAlchemy database URL
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url)


def get_session(database_url: str):
    """
    Get database session.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        SQLAlchemy session
    """
    engine = get_engine(database_url)
    Session = sessionmaker(bind=engine)
    return Session()
