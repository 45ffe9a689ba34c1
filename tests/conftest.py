"""
Pytest configuration and shared fixtures.
"""

import pytest
from typing import Dict, Any

from jobboard.database import sqlite_url, get_session
from jobboard.logger import reset_logger
from jobboard.migrate import migrate


@pytest.fixture(autouse=True)
def fresh_logger(monkeypatch):
    """Give every test its own logger bound to the current stdout."""
    monkeypatch.delenv("JOBBOARD_LOG_DIR", raising=False)
    monkeypatch.setenv("JOBBOARD_CONNECT_RETRIES", "0")
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def database_url(tmp_path) -> str:
    """URL of an empty SQLite database file."""
    return sqlite_url(tmp_path / "test.db")


@pytest.fixture
def migrated_url(database_url) -> str:
    """URL of a SQLite database with all migrations applied."""
    migrate(database_url)
    return database_url


@pytest.fixture
def db_session(migrated_url):
    """Session on a migrated database."""
    session = get_session(migrated_url)
    yield session
    session.close()


@pytest.fixture
def sample_job_fields() -> Dict[str, Any]:
    """Valid job payload."""
    return {
        "location": "Remote",
        "team": None,
        "job_title": "Engineer",
        "url": "http://example.com/job/1",
    }
