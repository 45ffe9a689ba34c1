"""
Tests for storage.py - CRUD helpers.
"""

import time

from jobboard.database import Job
from jobboard.logger import get_logger
from jobboard.storage import (
    create_job,
    delete_job,
    diff_dict,
    get_job,
    job_to_dict,
    list_jobs,
    update_job,
)


class TestDiffDict:
    """Test change detection."""

    def test_no_changes(self):
        assert diff_dict({"a": 1, "b": 2}, {"a": 1}) == {}

    def test_changed_and_new_keys(self):
        assert diff_dict({"a": 1}, {"a": 2, "b": None}) == {"a": {"old": 1, "new": 2}}

    def test_set_to_none(self):
        assert diff_dict({"a": "x"}, {"a": None}) == {"a": {"old": "x", "new": None}}


class TestCreateJob:
    """Test inserting jobs."""

    def test_create(self, db_session, sample_job_fields):
        """A valid payload is stored."""
        outcome = create_job(db_session, sample_job_fields)

        assert outcome["status"] == "new"
        job = get_job(db_session, outcome["id"])
        assert job.location == "Remote"
        assert job.team is None
        assert job.job_title == "Engineer"
        assert job.url == "http://example.com/job/1"

    def test_create_empty(self, db_session):
        """An empty payload creates a row of nulls."""
        outcome = create_job(db_session, {})
        assert outcome["status"] == "new"
        assert db_session.query(Job).count() == 1

    def test_create_invalid(self, db_session):
        """Invalid payloads are reported and nothing is written."""
        outcome = create_job(db_session, {"id": 5, "team": 3})

        assert outcome["status"] == "validation_error"
        assert outcome["id"] is None
        assert len(outcome["errors"]) == 2
        assert db_session.query(Job).count() == 0

    def test_distinct_ids(self, db_session, sample_job_fields):
        """Identical payloads get distinct ids."""
        first = create_job(db_session, sample_job_fields)
        second = create_job(db_session, sample_job_fields)
        assert first["id"] != second["id"]

    def test_write_metric(self, db_session, sample_job_fields):
        """Writes are counted."""
        create_job(db_session, sample_job_fields)
        assert get_logger().get_metrics()["jobs_written"] == 1


class TestReadJobs:
    """Test lookups and listing."""

    def test_get_missing(self, db_session):
        assert get_job(db_session, 999) is None

    def test_list_ordered_by_id(self, db_session):
        """Jobs are listed oldest id first."""
        ids = [create_job(db_session, {"job_title": t})["id"] for t in ["a", "b", "c"]]
        assert [job.id for job in list_jobs(db_session)] == ids

    def test_list_limit(self, db_session):
        for t in ["a", "b", "c"]:
            create_job(db_session, {"job_title": t})
        assert [job.job_title for job in list_jobs(db_session, limit=2)] == ["a", "b"]

    def test_job_to_dict(self, db_session, sample_job_fields):
        """All columns are exported, timestamps as ISO strings."""
        job = get_job(db_session, create_job(db_session, sample_job_fields)["id"])
        data = job_to_dict(job)

        assert set(data) == {"id", "location", "team", "job_title", "url", "created_at", "updated_at"}
        assert data["created_at"] == job.created_at.isoformat()
        assert data["updated_at"] == data["created_at"]


class TestUpdateJob:
    """Test updating jobs."""

    def test_update(self, db_session, sample_job_fields):
        """Changed fields are written and reported."""
        job_id = create_job(db_session, sample_job_fields)["id"]
        created_at = get_job(db_session, job_id).created_at

        time.sleep(0.01)
        outcome = update_job(db_session, job_id, {"team": "Platform", "location": "Remote"})

        assert outcome["status"] == "updated"
        assert outcome["changes"] == {"team": {"old": None, "new": "Platform"}}
        job = get_job(db_session, job_id)
        assert job.team == "Platform"
        assert job.created_at == created_at
        assert job.updated_at > created_at

    def test_update_to_null(self, db_session, sample_job_fields):
        """Columns can be cleared."""
        job_id = create_job(db_session, sample_job_fields)["id"]
        outcome = update_job(db_session, job_id, {"url": None})

        assert outcome["status"] == "updated"
        assert get_job(db_session, job_id).url is None

    def test_no_change_keeps_updated_at(self, db_session, sample_job_fields):
        """Writing identical values does not touch the row."""
        job_id = create_job(db_session, sample_job_fields)["id"]
        before = get_job(db_session, job_id).updated_at

        time.sleep(0.01)
        outcome = update_job(db_session, job_id, {"location": "Remote"})

        assert outcome["status"] == "no-change"
        assert get_job(db_session, job_id).updated_at == before

    def test_update_missing(self, db_session):
        assert update_job(db_session, 999, {"team": "x"})["status"] == "not-found"

    def test_update_invalid(self, db_session, sample_job_fields):
        """Managed columns cannot be changed through update."""
        job_id = create_job(db_session, sample_job_fields)["id"]
        outcome = update_job(db_session, job_id, {"created_at": "2020-01-01"})
        assert outcome["status"] == "validation_error"


class TestDeleteJob:
    """Test deleting jobs."""

    def test_delete(self, db_session, sample_job_fields):
        job_id = create_job(db_session, sample_job_fields)["id"]
        assert delete_job(db_session, job_id) is True
        assert get_job(db_session, job_id) is None

    def test_delete_missing(self, db_session):
        assert delete_job(db_session, 999) is False
