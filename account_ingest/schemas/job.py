"""Job snapshots returned to callers and serialized by the API."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from account_ingest.models.job import IngestionJob, JobStatus
from account_ingest.models.job_file import FileStatus, IngestionJobFile


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileStatusEntry(CamelModel):
    filename: str
    status: FileStatus
    total_records: int = 0
    inserted_records: int = 0
    duplicate_records: int = 0
    invalid_records: int = 0
    duration_millis: int = 0
    error_message: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: IngestionJobFile) -> "FileStatusEntry":
        return cls(
            filename=entry.file_filename,
            status=entry.file_status,
            total_records=entry.file_total_records,
            inserted_records=entry.file_inserted_records,
            duplicate_records=entry.file_duplicate_records,
            invalid_records=entry.file_invalid_records,
            duration_millis=entry.file_duration_millis,
            error_message=entry.file_error_message,
        )


class JobSnapshot(CamelModel):
    """Point-in-time copy of a job, safe to use after its session is closed."""
    job_id: str
    status: JobStatus
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_records: int = 0
    inserted_records: int = 0
    duplicate_records: int = 0
    invalid_records: int = 0
    processed_records: int = 0
    total_records_estimate: int = 0
    progress_percent: int = 0
    deleted_records: int = 0
    delete_existing: bool = False
    error_message: Optional[str] = None
    files: List[FileStatusEntry] = []

    @classmethod
    def from_job(cls, job: IngestionJob) -> "JobSnapshot":
        return cls(
            job_id=job.job_id,
            status=job.job_status,
            created_at=job.job_created_at,
            started_at=job.job_started_at,
            completed_at=job.job_completed_at,
            total_records=job.job_total_records,
            inserted_records=job.job_inserted_records,
            duplicate_records=job.job_duplicate_records,
            invalid_records=job.job_invalid_records,
            processed_records=job.job_processed_records,
            total_records_estimate=job.job_total_records_estimate,
            progress_percent=job.job_progress_percent,
            deleted_records=job.job_deleted_records,
            delete_existing=job.job_delete_existing,
            error_message=job.job_error_message,
            files=[FileStatusEntry.from_entry(entry) for entry in job.files],
        )


class JobCreatedResponse(CamelModel):
    job_id: str
    status: JobStatus
    file_count: int
    delete_existing: bool

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "JobCreatedResponse":
        return cls(
            job_id=snapshot.job_id,
            status=snapshot.status,
            file_count=len(snapshot.files),
            delete_existing=snapshot.delete_existing,
        )
