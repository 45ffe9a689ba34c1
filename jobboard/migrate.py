"""
Database migration runner for Alembic migrations.

Wraps the Alembic command API so the schema can be applied, rolled back
and inspected from code and from the CLI without an alembic.ini file.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from alembic import command
from alembic.autogenerate import compare_metadata
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from alembic.util import CommandError
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError

from .database import Base, get_engine
from .env import get_connect_retries
from .logger import get_logger
from .retry import exponential_backoff, is_transient_error

SCRIPT_LOCATION = Path(__file__).resolve().parent / "migrations"

ADVISORY_LOCK_ID = 20201006111749


class MigrationError(Exception):
    """Raised when a migration cannot be applied or reverted."""
    pass


class TableExistsError(MigrationError):
    """Raised when a migration creates a table that is already there."""
    pass


def build_config(database_url: str) -> Config:
    """Alembic config pointing at the bundled migrations."""
    cfg = Config()
    cfg.set_main_option("script_location", str(SCRIPT_LOCATION))
    # ConfigParser interpolation treats % specially
    cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return cfg


def _script_directory(database_url: str) -> ScriptDirectory:
    return ScriptDirectory.from_config(build_config(database_url))


def _to_migration_error(exc: Exception) -> MigrationError:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        message = str(exc.orig)
    else:
        message = str(exc)
    if "already exists" in message.lower():
        return TableExistsError(message)
    return MigrationError(message)


def wait_for_database(engine: Engine, retries: Optional[int] = None, base_delay: float = 0.5) -> None:
    """
    Block until the database answers a trivial query.

    Only transient OperationalErrors (locks, refused connections,
    timeouts) are retried; anything else is raised straight away.

    Raises:
        RetryError: if the database is still unreachable after all retries
    """
    logger = get_logger()
    if retries is None:
        retries = get_connect_retries()

    def _on_retry(attempt, exc, delay):
        logger.record_connect_retry()
        logger.warning("Database not ready, retrying", attempt=attempt, delay=delay, error=str(exc))

    @exponential_backoff(
        max_retries=retries,
        base_delay=base_delay,
        exceptions=(OperationalError,),
        on_retry=_on_retry,
        retry_if=is_transient_error,
    )
    def _ping():
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    _ping()


@contextmanager
def migration_lock(engine: Engine):
    """
    Hold a PostgreSQL advisory lock for the duration of the block.

    Other backends run unlocked. Failing to take the lock is logged and
    the migration proceeds, since Alembic's bookkeeping still applies.
    """
    logger = get_logger()
    if engine.dialect.name != "postgresql":
        yield
        return

    lock_conn = None
    try:
        lock_conn = engine.connect()
        lock_conn.execute(text("SELECT pg_advisory_lock(:lock_id)"), {"lock_id": ADVISORY_LOCK_ID})
        lock_conn.commit()
        logger.info("Migration lock acquired")
    except DBAPIError as e:
        logger.warning(f"Could not acquire advisory lock: {e}")
        if lock_conn is not None:
            lock_conn.close()
            lock_conn = None

    try:
        yield
    finally:
        if lock_conn is not None:
            try:
                lock_conn.execute(text("SELECT pg_advisory_unlock(:lock_id)"), {"lock_id": ADVISORY_LOCK_ID})
                lock_conn.commit()
            except DBAPIError as e:
                logger.warning(f"Could not release advisory lock: {e}")
            finally:
                lock_conn.close()


def _run_command(database_url: str, action, revision: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Run an Alembic command on a single locked connection.

    Returns:
        (revision before, revision after), both read on the locked connection
    """
    logger = get_logger()
    engine = get_engine(database_url)
    try:
        wait_for_database(engine)
        with migration_lock(engine):
            with engine.begin() as connection:
                before = MigrationContext.configure(connection).get_current_revision()
                cfg = build_config(database_url)
                cfg.attributes["connection"] = connection
                action(cfg, revision)
                after = MigrationContext.configure(connection).get_current_revision()
        return before, after
    except (DBAPIError, CommandError) as e:
        error = _to_migration_error(e)
        logger.record_error(type(error).__name__)
        logger.error("Migration failed", revision=revision, error=str(error))
        raise error from e
    finally:
        engine.dispose()


def _revisions_between(database_url: str, lower: Optional[str], upper: Optional[str]) -> List[str]:
    """Revisions above ``lower`` up to and including ``upper``, oldest first."""
    script_dir = _script_directory(database_url)
    revisions = []
    try:
        script = script_dir.get_revision(upper) if upper is not None else None
        while script is not None and script.revision != lower:
            revisions.append(script.revision)
            script = script_dir.get_revision(script.down_revision) if script.down_revision else None
    except CommandError as e:
        raise MigrationError(str(e)) from e
    revisions.reverse()
    return revisions


def current_revision(database_url: str) -> Optional[str]:
    """Revision recorded in the alembic_version table, or None."""
    engine = get_engine(database_url)
    try:
        with engine.connect() as conn:
            return MigrationContext.configure(conn).get_current_revision()
    finally:
        engine.dispose()


def head_revision(database_url: str) -> Optional[str]:
    return _script_directory(database_url).get_current_head()


def pending_revisions(database_url: str) -> List[str]:
    """Revisions not yet applied, oldest first."""
    current = current_revision(database_url)
    pending = []
    for script in _script_directory(database_url).walk_revisions():
        if script.revision == current:
            break
        pending.append(script.revision)
    pending.reverse()
    return pending


def migrate(database_url: str, target: str = "head") -> List[str]:
    """
    Apply pending migrations up to ``target``.

    Args:
        database_url: SQLAlchemy database URL
        target: Revision id to stop at (default: head)

    Returns:
        Revisions applied by this call, oldest first. Empty if already
        up to date, including when another runner got there first.

    Raises:
        TableExistsError: a migration created a table that already exists
        MigrationError: any other failure while migrating
    """
    logger = get_logger()

    if target != "head":
        try:
            script = _script_directory(database_url).get_revision(target)
        except CommandError as e:
            raise MigrationError(str(e)) from e
        if script is None:
            raise MigrationError(f"Cannot migrate up to {target!r}")
        target = script.revision

    to_apply = pending_revisions(database_url)
    if target != "head":
        to_apply = to_apply[: to_apply.index(target) + 1] if target in to_apply else []

    if not to_apply:
        logger.info("Database is up to date", revision=current_revision(database_url))
        return []

    logger.info(f"Applying {len(to_apply)} migration(s)", target=target)
    before, after = _run_command(database_url, command.upgrade, target)

    applied = _revisions_between(database_url, before, after)
    if not applied:
        logger.info("Database was migrated concurrently, nothing applied", revision=after)
    for revision in applied:
        logger.record_migration_applied(revision)
        logger.info("Applied migration", revision=revision)
    return applied


def rollback(database_url: str, steps: int = 1) -> List[str]:
    """
    Revert the last ``steps`` applied migrations.

    Returns:
        Revisions reverted by this call, newest first. Empty if nothing
        is applied.

    Raises:
        MigrationError: the recorded revision is unknown, or the
            downgrade failed
    """
    if steps < 1:
        raise ValueError("steps must be at least 1")

    logger = get_logger()
    current = current_revision(database_url)
    if current is None:
        logger.info("Nothing to roll back")
        return []

    applied = _revisions_between(database_url, None, current)
    to_revert = applied[-steps:]
    target = applied[-steps - 1] if len(applied) > steps else "base"

    logger.info(f"Reverting {len(to_revert)} migration(s)", target=target)
    before, after = _run_command(database_url, command.downgrade, target)

    reverted = list(reversed(_revisions_between(database_url, after, before)))
    for revision in reverted:
        logger.record_migration_reverted(revision)
        logger.info("Reverted migration", revision=revision)
    return reverted


def stamp(database_url: str, revision: str) -> None:
    """Record ``revision`` as applied without running any DDL."""
    _run_command(database_url, command.stamp, revision)
    get_logger().info("Stamped database", revision=revision)


def status(database_url: str) -> Dict[str, Any]:
    return {
        "current": current_revision(database_url),
        "head": head_revision(database_url),
        "pending": pending_revisions(database_url),
    }


def check_schema(database_url: str) -> List[Any]:
    """
    Differences between the live database and the ORM models.

    Returns:
        Alembic autogenerate diff entries; empty means no drift
    """
    engine = get_engine(database_url)
    try:
        with engine.connect() as conn:
            return compare_metadata(MigrationContext.configure(conn), Base.metadata)
    finally:
        engine.dispose()
