"""
CRUD helpers for the jobs table.

No business rules live here: callers may store any text (or nothing)
in any column. Results are reported as status dicts rather than raised.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .database import Job
from .logger import get_logger
from .schema import JOB_FIELDS, validate_job


def job_to_dict(job: Job) -> Dict[str, Any]:
    return {
        "id": job.id,
        "location": job.location,
        "team": job.team,
        "job_title": job.job_title,
        "url": job.url,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "updated_at": job.updated_at.isoformat() if job.updated_at else None,
    }


def diff_dict(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Changes from ``old`` to ``new``, limited to keys present in ``new``."""
    changed = {}
    for k, nv in new.items():
        ov = old.get(k)
        if ov != nv:
            changed[k] = {"old": ov, "new": nv}
    return changed


def create_job(session: Session, fields: Dict[str, Any]) -> Dict[str, Any]:
    errors = validate_job(fields)
    if errors:
        return {"id": None, "status": "validation_error", "errors": errors}

    job = Job(**fields)
    session.add(job)
    session.commit()

    logger = get_logger()
    logger.record_job_written()
    logger.debug("Created job", job_id=job.id)
    return {"id": job.id, "status": "new"}


def get_job(session: Session, job_id: int) -> Optional[Job]:
    return session.get(Job, job_id)


def list_jobs(session: Session, limit: Optional[int] = None) -> List[Job]:
    query = session.query(Job).order_by(Job.id)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def update_job(session: Session, job_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply ``fields`` to an existing job.

    Returns a dict whose ``status`` is one of ``not-found``,
    ``validation_error``, ``no-change`` or ``updated``. Only ``updated``
    touches the row, and with it ``updated_at``.
    """
    errors = validate_job(fields)
    if errors:
        return {"id": job_id, "status": "validation_error", "errors": errors}

    job = get_job(session, job_id)
    if job is None:
        return {"id": job_id, "status": "not-found"}

    current = {f: getattr(job, f) for f in JOB_FIELDS}
    changes = diff_dict(current, fields)
    if not changes:
        return {"id": job_id, "status": "no-change"}

    for field, change in changes.items():
        setattr(job, field, change["new"])
    session.commit()

    logger = get_logger()
    logger.record_job_written()
    logger.debug("Updated job", job_id=job_id, fields=sorted(changes))
    return {"id": job_id, "status": "updated", "changes": changes}


def delete_job(session: Session, job_id: int) -> bool:
    job = get_job(session, job_id)
    if job is None:
        return False
    session.delete(job)
    session.commit()
    get_logger().debug("Deleted job", job_id=job_id)
    return True
