"""
Ingestion job orchestration.
Owns job records, admission of new jobs and the background execution of each job.
"""
import csv
import functools
import io
import time
import uuid
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, List, Optional, TextIO

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from account_ingest.exceptions import IngestionValidationError, JobConflictError
from account_ingest.models.job import ACTIVE_JOB_STATUSES, JobStatus, UNKNOWN_TOTAL
from account_ingest.models.results import ProgressSnapshot
from account_ingest.repositories.account_product_repository import AccountProductRepository
from account_ingest.repositories.job_lock_repository import JobLockRepository, is_lock_contention
from account_ingest.repositories.job_repository import JobRepository, utcnow
from account_ingest.schemas.job import JobSnapshot
from account_ingest.services.compression import CompressionSupport
from account_ingest.services.job_scheduler import JobScheduler
from account_ingest.services.progress_reporter import ProgressReporter
from account_ingest.services.row_ingestor import AccountProductCsvIngestor
from account_ingest.services.spool_storage import SpooledFile, SpoolStorage
from account_ingest.settings import settings
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)

EXPORT_HEADERS = ("accountNumber", "productCode")
NO_FILES_MESSAGE = "At least one file is required for ingestion"
JOB_IN_PROGRESS_MESSAGE = "An ingestion job is already running. Please wait for it to finish."


@dataclass
class IncomingFile:
    """A named byte stream submitted for ingestion."""
    filename: Optional[str]
    stream: Optional[BinaryIO]


class JobOrchestrator:
    """Orchestrates ingestion jobs from submission to a terminal state."""

    def __init__(
        self,
        session_factory: sessionmaker,
        spool_storage: SpoolStorage,
        scheduler: JobScheduler,
        compression: Optional[CompressionSupport] = None,
        batch_size: int = settings.INGESTION_BATCH_SIZE,
        progress_update_interval: int = settings.PROGRESS_UPDATE_INTERVAL,
        export_fetch_size: int = settings.EXPORT_FETCH_SIZE,
        delimiter: str = settings.CSV_DELIMITER,
        encoding: str = settings.CSV_ENCODING,
    ):
        """
        Initialize orchestrator.

        Args:
            session_factory: Creates database sessions; each job task gets its own
            spool_storage: Holds uploaded bytes until the job has run
            scheduler: Runs each job off the request path
            compression: Compression detector shared by all ingestors
            batch_size: Rows per bulk insert
            progress_update_interval: Processed rows between progress reports
            export_fetch_size: Rows fetched and written per export chunk
            delimiter: CSV field delimiter
            encoding: Text encoding of the decoded files
        """
        self.session_factory = session_factory
        self.spool_storage = spool_storage
        self.scheduler = scheduler
        self.compression = compression or CompressionSupport()
        self.batch_size = max(1, batch_size)
        self.progress_update_interval = max(1, progress_update_interval)
        self.export_fetch_size = max(1, export_fetch_size)
        self.delimiter = delimiter
        self.encoding = encoding

    def enqueue(self, files: Iterable[Optional[IncomingFile]], delete_existing: bool = False) -> JobSnapshot:
        """
        Accept files for ingestion and schedule a job for them.

        An active job is checked for before any upload is spooled, so a
        rejected request never copies its bytes.

        Args:
            files: Submitted files in the order they must be ingested
            delete_existing: Clear all stored records before loading

        Returns:
            Snapshot of the new PENDING job

        Raises:
            IngestionValidationError: If no non-empty file was submitted
            JobConflictError: If another job is pending or running
            SpoolStorageError: If the uploads cannot be buffered
        """
        job_id = str(uuid.uuid4())
        db: Session = self.session_factory()
        try:
            if JobRepository.exists_active(db):
                logger.warning("Rejecting ingestion request because another job is in progress")
                raise JobConflictError(JOB_IN_PROGRESS_MESSAGE)
            # Spooling can be slow; do not hold a read transaction open across it
            db.rollback()

            spooled_files = self._spool_files(files)
            if not spooled_files:
                raise IngestionValidationError(NO_FILES_MESSAGE)

            try:
                if not self._claim_admission(db, job_id):
                    logger.warning(
                        "Rejecting ingestion request because the active job lock is held",
                        extra={"job_id": job_id}
                    )
                    raise JobConflictError(JOB_IN_PROGRESS_MESSAGE)

                try:
                    job = JobRepository.create_pending(
                        db,
                        [spooled.original_filename for spooled in spooled_files],
                        delete_existing,
                        job_id=job_id
                    )
                except Exception:
                    db.rollback()
                    JobLockRepository.release(db, job_id)
                    raise
                snapshot = JobSnapshot.from_job(job)
            except Exception:
                self._cleanup(spooled_files)
                raise
        finally:
            db.close()

        try:
            self.scheduler.submit(job_id, self.execute_job, job_id, spooled_files)
        except Exception as e:
            logger.error("Failed to schedule job", extra={"job_id": job_id}, exc_info=True)
            self._abandon(job_id, spooled_files, f"Failed to schedule job: {e}")
            raise

        logger.info(
            "Accepted ingestion job",
            extra={"job_id": job_id, "file_count": len(spooled_files), "delete_existing": delete_existing}
        )
        return snapshot

    def find_job(self, job_id: str) -> Optional[JobSnapshot]:
        """
        Look up a job.

        Args:
            job_id: Job ID

        Returns:
            Snapshot of the job or None if it does not exist
        """
        db: Session = self.session_factory()
        try:
            job = JobRepository.get_by_id(db, job_id)
            return JobSnapshot.from_job(job) if job else None
        finally:
            db.close()

    def reset_job(self, job_id: str) -> Optional[JobSnapshot]:
        """
        Reinitialize a job to PENDING.

        A task still executing the job is not stopped and may overwrite the
        reset with its own later updates.

        Args:
            job_id: Job ID

        Returns:
            Snapshot of the reset job or None if it does not exist
        """
        db: Session = self.session_factory()
        try:
            job = JobRepository.reset(db, job_id)
            return JobSnapshot.from_job(job) if job else None
        finally:
            db.close()

    def execute_job(self, job_id: str, spooled_files: List[SpooledFile]) -> None:
        """
        Run a job to completion. Called on the job's own thread.

        Spooled files are deleted and the admission lock is released on
        every exit path.

        Args:
            job_id: Job ID
            spooled_files: Buffered uploads in submission order
        """
        db: Session = self.session_factory()
        try:
            self._run_job(db, job_id, spooled_files)
        finally:
            self._cleanup(spooled_files)
            self._release_admission(db, job_id)
            db.close()

    def iter_export_chunks(self) -> Iterator[str]:
        """
        Stream all stored records as CSV text.

        Yields:
            Chunks of CSV text, the first one starting with the header row
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=self.delimiter, lineterminator="\n")
        writer.writerow(EXPORT_HEADERS)

        db: Session = self.session_factory()
        try:
            rows_in_chunk = 0
            for account_number, product_code in AccountProductRepository.iter_all(db, self.export_fetch_size):
                writer.writerow((account_number, product_code))
                rows_in_chunk += 1
                if rows_in_chunk >= self.export_fetch_size:
                    yield buffer.getvalue()
                    buffer.seek(0)
                    buffer.truncate(0)
                    rows_in_chunk = 0
        finally:
            db.close()

        remaining = buffer.getvalue()
        if remaining:
            yield remaining

    def export_account_products(self, output: TextIO) -> None:
        """
        Write all stored records as CSV to a text stream.

        Args:
            output: Destination stream
        """
        for chunk in self.iter_export_chunks():
            output.write(chunk)
        output.flush()

    def _run_job(self, db: Session, job_id: str, spooled_files: List[SpooledFile]) -> None:
        job = JobRepository.get_by_id(db, job_id)
        if not job:
            logger.warning(
                "Job not found - skipping processing",
                extra={"job_id": job_id, "note": "Job may have been deleted before its task started"}
            )
            return

        delete_existing = job.job_delete_existing
        JobRepository.update_status(db, job_id, JobStatus.RUNNING, started_at=utcnow())

        ingestor = self._build_ingestor(db)
        completed = ProgressSnapshot()
        active_index = -1

        try:
            total_estimate = self._estimate_total(ingestor, spooled_files)
            JobRepository.set_total_estimate(db, job_id, total_estimate)
            reporter = ProgressReporter(db, job_id, total_estimate)

            if delete_existing:
                self._delete_existing(db, job_id)

            for index, spooled in enumerate(spooled_files):
                active_index = index
                base = completed
                logger.info(
                    "Ingesting file",
                    extra={"job_id": job_id, "file_index": index, "upload_filename": spooled.original_filename}
                )

                with spooled.open() as raw_stream:
                    result = ingestor.ingest(
                        spooled.original_filename,
                        raw_stream,
                        lambda snapshot, base=base: reporter.report(base.plus(snapshot))
                    )

                JobRepository.complete_file(db, job_id, index, result)
                completed = completed.plus(ProgressSnapshot.from_result(result))
                reporter.report(completed)

            active_index = -1
            JobRepository.mark_succeeded(db, job_id, completed)
            logger.info(
                "Job completed",
                extra={
                    "job_id": job_id,
                    "processed": completed.processed,
                    "inserted": completed.inserted,
                    "duplicates": completed.duplicates,
                    "invalid": completed.invalid
                }
            )

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(
                "Job failed",
                extra={"job_id": job_id, "file_index": active_index, "error": message},
                exc_info=True
            )
            db.rollback()
            if 0 <= active_index < len(spooled_files):
                try:
                    JobRepository.fail_file(
                        db,
                        job_id,
                        active_index,
                        spooled_files[active_index].original_filename,
                        message
                    )
                except Exception:
                    # File entries are gone when the job was reset while running
                    db.rollback()
                    logger.warning(
                        "Failed to record file failure",
                        extra={"job_id": job_id, "file_index": active_index},
                        exc_info=True
                    )
            JobRepository.mark_failed(db, job_id, message)

    def _build_ingestor(self, db: Session) -> AccountProductCsvIngestor:
        return AccountProductCsvIngestor(
            functools.partial(AccountProductRepository.bulk_insert, db),
            compression=self.compression,
            batch_size=self.batch_size,
            progress_update_interval=self.progress_update_interval,
            delimiter=self.delimiter,
            encoding=self.encoding,
        )

    @staticmethod
    def _estimate_total(ingestor: AccountProductCsvIngestor, spooled_files: List[SpooledFile]) -> int:
        estimates = [
            ingestor.estimate_record_count(spooled.open, spooled.original_filename)
            for spooled in spooled_files
        ]
        known = [estimate for estimate in estimates if estimate >= 0]
        return sum(known) if known else UNKNOWN_TOTAL

    @staticmethod
    def _delete_existing(db: Session, job_id: str) -> None:
        start = time.monotonic()
        deleted, strategy = AccountProductRepository.delete_all(db)
        JobRepository.set_deleted_records(db, job_id, deleted)
        logger.info(
            "Cleared existing account products",
            extra={
                "job_id": job_id,
                "deleted_records": deleted,
                "strategy": strategy,
                "duration_ms": int((time.monotonic() - start) * 1000)
            }
        )

    def _spool_files(self, files: Optional[Iterable[Optional[IncomingFile]]]) -> List[SpooledFile]:
        spooled_files: List[SpooledFile] = []
        try:
            for incoming in files or ():
                if incoming is None or incoming.stream is None:
                    logger.warning("Skipping null file entry provided for ingestion")
                    continue

                spooled = self.spool_storage.spool(incoming.filename, incoming.stream)
                if spooled.size == 0:
                    logger.warning(
                        "Skipping empty file entry provided for ingestion",
                        extra={"upload_filename": spooled.original_filename}
                    )
                    spooled.delete_silently()
                    continue

                spooled_files.append(spooled)
        except Exception:
            self._cleanup(spooled_files)
            raise
        return spooled_files

    @staticmethod
    def _claim_admission(db: Session, job_id: str) -> bool:
        if JobLockRepository.try_claim(db, job_id):
            return True

        # A lock left behind by a job that already finished is stale
        try:
            holder = JobLockRepository.holder(db)
            holder_job = JobRepository.get_by_id(db, holder) if holder else None
            if holder_job is None or holder_job.job_status in ACTIVE_JOB_STATUSES:
                return False

            logger.warning(
                "Releasing stale job lock",
                extra={"job_id": job_id, "holder": holder, "holder_status": holder_job.job_status.value}
            )
            JobLockRepository.release(db, holder)
        except OperationalError as e:
            if not is_lock_contention(e):
                raise
            db.rollback()
            logger.warning("Stale job lock recovery contended", extra={"job_id": job_id, "error": str(e.orig)})
            return False
        return JobLockRepository.try_claim(db, job_id)

    @staticmethod
    def _release_admission(db: Session, job_id: str) -> None:
        try:
            db.rollback()
            JobLockRepository.release(db, job_id)
        except Exception:
            logger.warning("Failed to release job lock", extra={"job_id": job_id}, exc_info=True)

    def _abandon(self, job_id: str, spooled_files: List[SpooledFile], message: str) -> None:
        db: Session = self.session_factory()
        try:
            JobRepository.mark_failed(db, job_id, message)
        finally:
            self._cleanup(spooled_files)
            self._release_admission(db, job_id)
            db.close()

    @staticmethod
    def _cleanup(spooled_files: List[SpooledFile]) -> None:
        for spooled in spooled_files:
            spooled.delete_silently()
