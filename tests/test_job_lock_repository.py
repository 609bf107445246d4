"""Tests for account_ingest.repositories.job_lock_repository"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from account_ingest.repositories.job_lock_repository import JobLockRepository, is_lock_contention


def _operational_error(message):
    return OperationalError("INSERT INTO ingestion_job_lock", {}, Exception(message))


class TestTryClaim:

    def test_first_claim_wins(self, db):
        assert JobLockRepository.try_claim(db, "job-1")
        assert not JobLockRepository.try_claim(db, "job-2")
        assert JobLockRepository.holder(db) == "job-1"

    def test_release_by_other_job_keeps_lock(self, db):
        JobLockRepository.try_claim(db, "job-1")

        assert not JobLockRepository.release(db, "job-2")
        assert JobLockRepository.release(db, "job-1")
        assert JobLockRepository.holder(db) is None

    def test_locked_database_counts_as_held(self):
        session = MagicMock()
        session.commit.side_effect = _operational_error("database is locked")

        assert not JobLockRepository.try_claim(session, "job-1")
        session.rollback.assert_called_once()

    def test_other_operational_errors_propagate(self):
        session = MagicMock()
        session.commit.side_effect = _operational_error("disk I/O error")

        with pytest.raises(OperationalError):
            JobLockRepository.try_claim(session, "job-1")


@pytest.mark.parametrize(
    "message,expected",
    [
        ("database is locked", True),
        ("Database table is locked", True),
        ("no such table: ingestion_job_lock", False),
    ],
)
def test_is_lock_contention(message, expected):
    assert is_lock_contention(_operational_error(message)) is expected
