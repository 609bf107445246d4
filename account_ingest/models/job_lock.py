"""
SQLAlchemy model for ingestion_job_locks table.

Holds at most one row per lock name. Claiming the lock is a plain INSERT, so
two concurrent submissions cannot both succeed.
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from account_ingest.app.db.database import Base

ACTIVE_JOB_LOCK = "active"


class IngestionJobLock(Base):
    """Admission marker for the single active ingestion job."""
    
    __tablename__ = "ingestion_job_locks"
    
    lock_name = Column(String(32), primary_key=True)
    lock_job_id = Column(String(36), nullable=False)
    lock_acquired_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<IngestionJobLock(lock_name={self.lock_name}, job_id={self.lock_job_id})>"
