"""
Repository for ingestion job operations.
"""
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import List, Optional
import uuid

from account_ingest.models.job import ACTIVE_JOB_STATUSES, IngestionJob, JobStatus, UNKNOWN_TOTAL
from account_ingest.models.job_file import FileStatus, IngestionJobFile
from account_ingest.models.results import FileIngestionResult, ProgressSnapshot
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRepository:
    """Repository for ingestion job database operations."""

    @staticmethod
    def get_by_id(db: Session, job_id: str) -> Optional[IngestionJob]:
        """
        Get job by ID.

        Args:
            db: Database session
            job_id: Job ID

        Returns:
            IngestionJob instance or None
        """
        return db.query(IngestionJob).filter(IngestionJob.job_id == job_id).first()

    @staticmethod
    def get_required(db: Session, job_id: str) -> IngestionJob:
        job = JobRepository.get_by_id(db, job_id)
        if not job:
            raise ValueError(f"Job {job_id} not found")
        return job

    @staticmethod
    def exists_active(db: Session) -> bool:
        """
        Check whether any job is pending or running.

        Args:
            db: Database session

        Returns:
            True if an active job exists
        """
        count = db.query(IngestionJob).filter(
            IngestionJob.job_status.in_(ACTIVE_JOB_STATUSES)
        ).count()
        return count > 0

    @staticmethod
    def create_pending(
        db: Session,
        filenames: List[str],
        delete_existing: bool,
        job_id: Optional[str] = None
    ) -> IngestionJob:
        """
        Create a pending job with one pending entry per file.

        Args:
            db: Database session
            filenames: Original filenames in submission order
            delete_existing: Whether existing records are cleared before loading
            job_id: Explicit ID, generated when omitted

        Returns:
            Created job instance
        """
        job = IngestionJob(
            job_id=job_id or str(uuid.uuid4()),
            job_status=JobStatus.PENDING,
            job_created_at=utcnow(),
            job_delete_existing=delete_existing,
            job_deleted_records=0,
            job_total_records_estimate=0,
            job_processed_records=0,
            job_inserted_records=0,
            job_duplicate_records=0,
            job_invalid_records=0,
            job_total_records=0,
            job_progress_percent=0,
        )
        job.files = [
            IngestionJobFile(
                file_position=position,
                file_filename=filename,
                file_status=FileStatus.PENDING,
                file_total_records=0,
                file_inserted_records=0,
                file_duplicate_records=0,
                file_invalid_records=0,
                file_duration_millis=0,
            )
            for position, filename in enumerate(filenames)
        ]

        db.add(job)
        db.commit()
        db.refresh(job)

        logger.info(
            "Job created",
            extra={"job_id": job.job_id, "file_count": len(filenames), "delete_existing": delete_existing}
        )

        return job

    @staticmethod
    def update_status(
        db: Session,
        job_id: str,
        status: JobStatus,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
        error_message: Optional[str] = None
    ) -> IngestionJob:
        """
        Update job status.

        Args:
            db: Database session
            job_id: Job ID
            status: New status
            started_at: Start timestamp
            completed_at: Completion timestamp
            error_message: Failure message

        Returns:
            Updated job instance
        """
        job = JobRepository.get_required(db, job_id)

        job.job_status = status
        if started_at:
            job.job_started_at = started_at
        if completed_at:
            job.job_completed_at = completed_at
        job.job_error_message = error_message

        db.commit()
        db.refresh(job)

        logger.info(
            "Job status updated",
            extra={"job_id": job_id, "status": status.value}
        )

        return job

    @staticmethod
    def set_total_estimate(db: Session, job_id: str, total_estimate: int) -> IngestionJob:
        job = JobRepository.get_required(db, job_id)
        job.job_total_records_estimate = total_estimate
        db.commit()
        return job

    @staticmethod
    def set_deleted_records(db: Session, job_id: str, deleted_records: int) -> IngestionJob:
        job = JobRepository.get_required(db, job_id)
        job.job_deleted_records = deleted_records
        db.commit()
        return job

    @staticmethod
    def update_progress(
        db: Session,
        job_id: str,
        totals: ProgressSnapshot,
        progress_percent: int
    ) -> IngestionJob:
        """
        Store running job-wide counters.

        Args:
            db: Database session
            job_id: Job ID
            totals: Counters across completed files plus the file in flight
            progress_percent: Derived percentage

        Returns:
            Updated job instance
        """
        job = JobRepository.get_required(db, job_id)

        job.job_processed_records = totals.processed
        job.job_total_records = totals.processed
        job.job_inserted_records = totals.inserted
        job.job_duplicate_records = totals.duplicates
        job.job_invalid_records = totals.invalid
        job.job_progress_percent = progress_percent

        db.commit()

        return job

    @staticmethod
    def complete_file(db: Session, job_id: str, position: int, result: FileIngestionResult) -> IngestionJobFile:
        """
        Replace the entry at a position with a successful file result.

        Args:
            db: Database session
            job_id: Job ID
            position: Submission index of the file
            result: Final counters of the file

        Returns:
            Updated file entry
        """
        entry = JobRepository._file_at(db, job_id, position)
        entry.file_filename = result.filename
        entry.file_status = FileStatus.SUCCEEDED
        entry.file_total_records = result.total_records
        entry.file_inserted_records = result.inserted_records
        entry.file_duplicate_records = result.duplicate_records
        entry.file_invalid_records = result.invalid_records
        entry.file_duration_millis = result.duration_millis
        entry.file_error_message = None
        db.commit()
        return entry

    @staticmethod
    def fail_file(db: Session, job_id: str, position: int, filename: str, error_message: str) -> IngestionJobFile:
        """
        Replace the entry at a position with a failed file entry.

        Args:
            db: Database session
            job_id: Job ID
            position: Submission index of the file
            filename: Original filename
            error_message: Failure message

        Returns:
            Updated file entry
        """
        entry = JobRepository._file_at(db, job_id, position)
        entry.file_filename = filename
        entry.file_status = FileStatus.FAILED
        entry.file_total_records = 0
        entry.file_inserted_records = 0
        entry.file_duplicate_records = 0
        entry.file_invalid_records = 0
        entry.file_duration_millis = 0
        entry.file_error_message = error_message
        db.commit()
        return entry

    @staticmethod
    def mark_succeeded(db: Session, job_id: str, totals: ProgressSnapshot) -> IngestionJob:
        """
        Finalize a job whose files all succeeded.

        Progress is forced to 100 and an unknown estimate is replaced by the
        actual total.

        Args:
            db: Database session
            job_id: Job ID
            totals: Final counters across all files

        Returns:
            Updated job instance
        """
        job = JobRepository.get_required(db, job_id)

        job.job_status = JobStatus.SUCCEEDED
        job.job_completed_at = utcnow()
        job.job_processed_records = totals.processed
        job.job_total_records = totals.processed
        job.job_inserted_records = totals.inserted
        job.job_duplicate_records = totals.duplicates
        job.job_invalid_records = totals.invalid
        job.job_progress_percent = 100
        job.job_error_message = None
        if job.job_total_records_estimate == UNKNOWN_TOTAL:
            job.job_total_records_estimate = totals.processed

        db.commit()
        db.refresh(job)

        logger.info(
            "Job status updated",
            extra={"job_id": job_id, "status": JobStatus.SUCCEEDED.value}
        )

        return job

    @staticmethod
    def mark_failed(db: Session, job_id: str, error_message: str) -> IngestionJob:
        """
        Finalize a job after an unrecoverable failure.

        Args:
            db: Database session
            job_id: Job ID
            error_message: Failure message

        Returns:
            Updated job instance
        """
        return JobRepository.update_status(
            db,
            job_id,
            JobStatus.FAILED,
            completed_at=utcnow(),
            error_message=error_message
        )

    @staticmethod
    def reset(db: Session, job_id: str) -> Optional[IngestionJob]:
        """
        Reinitialize a job to PENDING with zeroed counters and no file entries.

        Args:
            db: Database session
            job_id: Job ID

        Returns:
            Reset job instance or None if it does not exist
        """
        job = JobRepository.get_by_id(db, job_id)
        if not job:
            return None

        if job.job_status == JobStatus.RUNNING:
            logger.warning(
                "Resetting a running job; its ingestion task is not stopped",
                extra={"job_id": job_id}
            )

        job.job_status = JobStatus.PENDING
        job.job_started_at = None
        job.job_completed_at = None
        job.job_delete_existing = False
        job.job_deleted_records = 0
        job.job_total_records_estimate = 0
        job.job_processed_records = 0
        job.job_inserted_records = 0
        job.job_duplicate_records = 0
        job.job_invalid_records = 0
        job.job_total_records = 0
        job.job_progress_percent = 0
        job.job_error_message = None
        job.files.clear()

        db.commit()
        db.refresh(job)

        logger.info("Job reset to PENDING", extra={"job_id": job_id})

        return job

    @staticmethod
    def _file_at(db: Session, job_id: str, position: int) -> IngestionJobFile:
        entry = db.query(IngestionJobFile).filter(
            IngestionJobFile.file_job_id == job_id,
            IngestionJobFile.file_position == position
        ).first()
        if not entry:
            raise ValueError(f"Job {job_id} has no file at position {position}")
        return entry
