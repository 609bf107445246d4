"""
SQLAlchemy model for ingestion_jobs table.
"""
from sqlalchemy import Column, BigInteger, Integer, String, Boolean, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from account_ingest.app.db.database import Base
from account_ingest.models.job_file import IngestionJobFile  # noqa: F401


class JobStatus(str, enum.Enum):
    """Job status enumeration."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


ACTIVE_JOB_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING)

# Sentinel for a total that could not be estimated
UNKNOWN_TOTAL = -1


class IngestionJob(Base):
    """Ingestion job model representing the ingestion_jobs table."""
    
    __tablename__ = "ingestion_jobs"
    
    job_id = Column(String(36), primary_key=True)
    job_status = Column(SQLEnum(JobStatus), nullable=False, index=True)
    job_created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    job_started_at = Column(DateTime(timezone=True), nullable=True)
    job_completed_at = Column(DateTime(timezone=True), nullable=True)
    job_delete_existing = Column(Boolean, nullable=False, default=False)
    job_deleted_records = Column(BigInteger, nullable=False, default=0)
    job_total_records_estimate = Column(BigInteger, nullable=False, default=0)
    job_processed_records = Column(BigInteger, nullable=False, default=0)
    job_inserted_records = Column(BigInteger, nullable=False, default=0)
    job_duplicate_records = Column(BigInteger, nullable=False, default=0)
    job_invalid_records = Column(BigInteger, nullable=False, default=0)
    job_total_records = Column(BigInteger, nullable=False, default=0)
    job_progress_percent = Column(Integer, nullable=False, default=0)
    job_error_message = Column(Text, nullable=True)
    
    # Relationships
    files = relationship(
        "IngestionJobFile",
        back_populates="job",
        order_by="IngestionJobFile.file_position",
        cascade="all, delete-orphan",
    )
    
    def __repr__(self):
        return f"<IngestionJob(job_id={self.job_id}, status={self.job_status}, files={len(self.files)})>"
