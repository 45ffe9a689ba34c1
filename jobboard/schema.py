from typing import Any, Dict, List

JOB_FIELDS = ["location", "team", "job_title", "url"]
READ_ONLY_FIELDS = ["id", "created_at", "updated_at"]


def validate_job(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.

    Every column is nullable and unconstrained, so this only rejects
    unknown keys, writes to managed columns and non-text values.
    """
    errors: List[str] = []

    if not isinstance(data, dict):
        return ["Job payload must be an object"]

    for f in data:
        if f in READ_ONLY_FIELDS:
            errors.append(f"Field '{f}' is managed by the database and cannot be set")
        elif f not in JOB_FIELDS:
            errors.append(f"Unknown field: {f}")

    for f in JOB_FIELDS:
        if f in data and data[f] is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string or null")

    return errors
