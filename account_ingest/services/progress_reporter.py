"""
Job-wide progress reporting.
"""
from typing import Optional

from sqlalchemy.orm import Session

from account_ingest.models.results import ProgressSnapshot
from account_ingest.repositories.job_repository import JobRepository
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)


def compute_progress_percent(processed: int, estimate: int, previous: int = 0) -> int:
    """
    Percentage of the estimated total that has been processed.

    Rounds half up and caps at 100. An unknown or zero estimate leaves the
    previous value in place. The result never goes below ``previous``.
    """
    if estimate <= 0:
        return previous
    percent = min(100, (processed * 200 + estimate) // (2 * estimate))
    return max(previous, percent)


class ProgressReporter:
    """
    Persists running job totals.

    Totals passed in must already include the counts of completed files.
    Writes are skipped when no counter changed since the last write.
    """

    def __init__(self, db: Session, job_id: str, total_estimate: int, initial_percent: int = 0):
        """
        Initialize reporter.

        Args:
            db: Database session owned by the job's task
            job_id: Job being reported on
            total_estimate: Estimated rows across all files, UNKNOWN_TOTAL if unknown
            initial_percent: Percent already stored on the job
        """
        self.db = db
        self.job_id = job_id
        self.total_estimate = total_estimate
        self.progress_percent = initial_percent
        self._last_reported: Optional[ProgressSnapshot] = None

    def report(self, totals: ProgressSnapshot) -> bool:
        """
        Persist job totals if they changed.

        Args:
            totals: Job-wide counters

        Returns:
            True when an update was written
        """
        if totals == self._last_reported:
            return False

        self.progress_percent = compute_progress_percent(
            totals.processed,
            self.total_estimate,
            self.progress_percent
        )
        JobRepository.update_progress(self.db, self.job_id, totals, self.progress_percent)
        self._last_reported = totals

        logger.debug(
            "Job progress updated",
            extra={
                "job_id": self.job_id,
                "processed": totals.processed,
                "progress_percent": self.progress_percent
            }
        )
        return True
