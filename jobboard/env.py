import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///data/jobs.db"


def load_env() -> None:
    """Load .env from the working directory if present.
    Variables already set in the environment win.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def get_database_url() -> str:
    return os.getenv("JOBBOARD_DATABASE_URL") or DEFAULT_DATABASE_URL


def get_log_level() -> str:
    return os.getenv("JOBBOARD_LOG_LEVEL", "INFO")


def get_log_dir() -> Optional[Path]:
    value = os.getenv("JOBBOARD_LOG_DIR")
    return Path(value) if value else None


def get_connect_retries() -> int:
    value = os.getenv("JOBBOARD_CONNECT_RETRIES", "3")
    try:
        return max(0, int(value))
    except ValueError:
        raise ValueError(f"JOBBOARD_CONNECT_RETRIES must be an integer, got {value!r}")
