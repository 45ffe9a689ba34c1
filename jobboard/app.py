import argparse
from typing import List, Optional

from .env import load_env, get_database_url

from . import __version__
from .database import get_session
from .migrate import (
    MigrationError,
    migrate,
    rollback,
    stamp,
    status,
    check_schema,
)
from .retry import RetryError
from .storage import create_job, update_job, delete_job, list_jobs, job_to_dict

FIELD_OPTIONS = [
    ("--location", "location"),
    ("--team", "team"),
    ("--job-title", "job_title"),
    ("--url", "url"),
]


def _fields_from_args(args: argparse.Namespace) -> dict:
    fields = {}
    for _, field in FIELD_OPTIONS:
        value = getattr(args, field)
        if value is not None:
            fields[field] = value
    return fields


def _add_field_options(parser: argparse.ArgumentParser) -> None:
    for option, field in FIELD_OPTIONS:
        parser.add_argument(option, dest=field, help=f"Value for the {field} column")


def cmd_migrate(args: argparse.Namespace) -> None:
    try:
        applied = migrate(args.database, target=args.to)
    except (MigrationError, RetryError) as e:
        raise SystemExit(f"Migration failed: {e}")
    if not applied:
        print("Already up to date.")
        return
    for revision in applied:
        print(f"[applied] {revision}")


def cmd_rollback(args: argparse.Namespace) -> None:
    try:
        reverted = rollback(args.database, steps=args.steps)
    except ValueError as e:
        raise SystemExit(str(e))
    except (MigrationError, RetryError) as e:
        raise SystemExit(f"Rollback failed: {e}")
    if not reverted:
        print("Nothing to roll back.")
        return
    for revision in reverted:
        print(f"[reverted] {revision}")


def cmd_status(args: argparse.Namespace) -> None:
    info = status(args.database)
    print(f"Current: {info['current'] or '(none)'}")
    print(f"Head:    {info['head'] or '(none)'}")
    if info["pending"]:
        print("Pending:")
        for revision in info["pending"]:
            print(f" - {revision}")
    else:
        print("Pending: (none)")


def cmd_stamp(args: argparse.Namespace) -> None:
    try:
        stamp(args.database, args.revision)
    except (MigrationError, RetryError) as e:
        raise SystemExit(f"Stamp failed: {e}")
    print(f"Stamped {args.revision}")


def cmd_check(args: argparse.Namespace) -> None:
    diffs = check_schema(args.database)
    if not diffs:
        print("Schema matches models.")
        return
    print("Schema drift:")
    for diff in diffs:
        print(f" - {diff}")
    raise SystemExit(1)


def cmd_add(args: argparse.Namespace) -> None:
    session = get_session(args.database)
    try:
        outcome = create_job(session, _fields_from_args(args))
    finally:
        session.close()
    if outcome["status"] == "validation_error":
        print("Invalid:")
        for e in outcome["errors"]:
            print(f" - {e}")
        raise SystemExit(2)
    print(f"Job: {outcome['id']}")
    print(f"Status: {outcome['status']}")


def cmd_update(args: argparse.Namespace) -> None:
    session = get_session(args.database)
    try:
        outcome = update_job(session, args.id, _fields_from_args(args))
    finally:
        session.close()
    if outcome["status"] == "not-found":
        raise SystemExit(f"Job not found: {args.id}")
    print(f"Job: {outcome['id']}")
    print(f"Status: {outcome['status']}")


def cmd_delete(args: argparse.Namespace) -> None:
    session = get_session(args.database)
    try:
        deleted = delete_job(session, args.id)
    finally:
        session.close()
    if not deleted:
        raise SystemExit(f"Job not found: {args.id}")
    print(f"Deleted job {args.id}")


def cmd_list(args: argparse.Namespace) -> None:
    session = get_session(args.database)
    try:
        jobs = [job_to_dict(job) for job in list_jobs(session, limit=args.limit)]
    finally:
        session.close()
    if not jobs:
        print("No jobs stored.")
        return
    print(f"Found {len(jobs)} jobs:\n")
    for job in jobs:
        print(f"ID: {job['id']}")
        print(f"  Title: {job['job_title']}")
        print(f"  Team: {job['team']}")
        print(f"  Location: {job['location']}")
        print(f"  URL: {job['url']}")
        print(f"  Updated: {job['updated_at']}")
        print()


def main(argv: Optional[List[str]] = None):
    # Load .env if present (JOBBOARD_DATABASE_URL, JOBBOARD_LOG_LEVEL, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="jobboard", description="Jobs table migrations and storage")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--database", default=get_database_url(),
                        help="SQLAlchemy database URL (default: $JOBBOARD_DATABASE_URL or sqlite:///data/jobs.db)")

    subparsers = parser.add_subparsers(dest="command")
    mig = subparsers.add_parser("migrate", help="Apply pending migrations")
    mig.add_argument("--to", default="head", help="Target revision (default: head)")
    mig.set_defaults(func=cmd_migrate)

    rb = subparsers.add_parser("rollback", help="Revert applied migrations")
    rb.add_argument("--steps", type=int, default=1, help="Number of migrations to revert (default: 1)")
    rb.set_defaults(func=cmd_rollback)

    st = subparsers.add_parser("status", help="Show current, head and pending revisions")
    st.set_defaults(func=cmd_status)

    stp = subparsers.add_parser("stamp", help="Record a revision as applied without running it")
    stp.add_argument("revision", help="Revision id, 'head' or 'base'")
    stp.set_defaults(func=cmd_stamp)

    chk = subparsers.add_parser("check", help="Compare the database schema with the models")
    chk.set_defaults(func=cmd_check)

    add = subparsers.add_parser("add", help="Insert a job")
    _add_field_options(add)
    add.set_defaults(func=cmd_add)

    upd = subparsers.add_parser("update", help="Update fields of a job")
    upd.add_argument("id", type=int, help="Job id")
    _add_field_options(upd)
    upd.set_defaults(func=cmd_update)

    dlt = subparsers.add_parser("delete", help="Delete a job")
    dlt.add_argument("id", type=int, help="Job id")
    dlt.set_defaults(func=cmd_delete)

    lst = subparsers.add_parser("list", help="List stored jobs")
    lst.add_argument("--limit", type=int, help="Maximum number of jobs to show")
    lst.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
