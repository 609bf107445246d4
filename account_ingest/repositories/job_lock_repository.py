"""
Repository for the active job admission lock.
"""
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from typing import Optional

from account_ingest.models.job_lock import ACTIVE_JOB_LOCK, IngestionJobLock
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)

# Driver messages for a write refused because another transaction holds the database
_LOCK_CONTENTION_MESSAGES = ("database is locked", "database table is locked", "database is busy")


def is_lock_contention(error: OperationalError) -> bool:
    """True when the driver refused a write because another transaction holds the lock."""
    message = str(error.orig).lower()
    return any(text in message for text in _LOCK_CONTENTION_MESSAGES)


class JobLockRepository:
    """Repository for ingestion job lock operations."""

    @staticmethod
    def try_claim(db: Session, job_id: str, lock_name: str = ACTIVE_JOB_LOCK) -> bool:
        """
        Atomically claim the lock for a job.

        A concurrent claim that makes the database refuse the write counts as
        the lock being held.

        Args:
            db: Database session
            job_id: Job that will hold the lock
            lock_name: Lock to claim

        Returns:
            True if claimed, False if another job holds it
        """
        db.add(IngestionJobLock(lock_name=lock_name, lock_job_id=job_id))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Job lock already held",
                extra={"job_id": job_id, "lock_name": lock_name, "holder": JobLockRepository.holder(db, lock_name)}
            )
            return False
        except OperationalError as e:
            if not is_lock_contention(e):
                raise
            db.rollback()
            logger.warning(
                "Job lock contended by a concurrent claim",
                extra={"job_id": job_id, "lock_name": lock_name, "error": str(e.orig)}
            )
            return False

        logger.debug("Job lock claimed", extra={"job_id": job_id, "lock_name": lock_name})
        return True

    @staticmethod
    def holder(db: Session, lock_name: str = ACTIVE_JOB_LOCK) -> Optional[str]:
        lock = db.query(IngestionJobLock).filter(IngestionJobLock.lock_name == lock_name).first()
        return lock.lock_job_id if lock else None

    @staticmethod
    def release(db: Session, job_id: str, lock_name: str = ACTIVE_JOB_LOCK) -> bool:
        """
        Release the lock if the given job holds it.

        Args:
            db: Database session
            job_id: Job releasing the lock
            lock_name: Lock to release

        Returns:
            True if a lock row was removed
        """
        result = db.execute(
            delete(IngestionJobLock).where(
                IngestionJobLock.lock_name == lock_name,
                IngestionJobLock.lock_job_id == job_id
            )
        )
        db.commit()
        released = result.rowcount > 0
        if released:
            logger.debug("Job lock released", extra={"job_id": job_id, "lock_name": lock_name})
        return released
