"""
SQLAlchemy model for ingestion_job_files table.
"""
from sqlalchemy import Column, BigInteger, Integer, String, Text, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from account_ingest.app.db.database import Base


class FileStatus(str, enum.Enum):
    """Per-file status enumeration."""
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class IngestionJobFile(Base):
    """One submitted file of an ingestion job, kept at its submission position."""
    
    __tablename__ = "ingestion_job_files"
    __table_args__ = (
        UniqueConstraint("file_job_id", "file_position", name="uq_ingestion_job_files_position"),
    )
    
    file_id = Column(Integer, primary_key=True, autoincrement=True)
    file_job_id = Column(String(36), ForeignKey("ingestion_jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
    file_position = Column(Integer, nullable=False)
    file_filename = Column(String, nullable=False)
    file_status = Column(SQLEnum(FileStatus), nullable=False)
    file_total_records = Column(BigInteger, nullable=False, default=0)
    file_inserted_records = Column(BigInteger, nullable=False, default=0)
    file_duplicate_records = Column(BigInteger, nullable=False, default=0)
    file_invalid_records = Column(BigInteger, nullable=False, default=0)
    file_duration_millis = Column(BigInteger, nullable=False, default=0)
    file_error_message = Column(Text, nullable=True)
    
    # Relationships
    job = relationship("IngestionJob", back_populates="files")
    
    def __repr__(self):
        return f"<IngestionJobFile(job_id={self.file_job_id}, position={self.file_position}, status={self.file_status})>"
