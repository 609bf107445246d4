"""
Classification of bulk insert outcomes.

Writes are insert-only and keyed by the natural account/product id, so a
duplicate-key failure means the row is already stored. Only other failure
codes make a flush fatal.
"""
from account_ingest.models.results import BulkWriteOutcome, BulkWriteSummary

# SQLSTATE unique_violation
DUPLICATE_KEY_ERROR_CODE = "23505"

_MAX_REPORTED_ERRORS = 3


def classify_bulk_write(outcome: BulkWriteOutcome) -> BulkWriteSummary:
    """
    Turn a store outcome into inserted/duplicate counts or a fatal error.

    Args:
        outcome: Result reported by the store for one batch

    Returns:
        BulkWriteSummary; fatal_error is set when any failure is not a duplicate key
    """
    if not outcome.write_errors:
        return BulkWriteSummary(inserted=outcome.inserted_count, duplicates=0)

    duplicates = [error for error in outcome.write_errors if error.code == DUPLICATE_KEY_ERROR_CODE]
    others = [error for error in outcome.write_errors if error.code != DUPLICATE_KEY_ERROR_CODE]

    if others:
        details = "; ".join(
            f"#{error.index} [{error.code}] {error.message}"
            for error in others[:_MAX_REPORTED_ERRORS]
        )
        return BulkWriteSummary(
            inserted=outcome.inserted_count,
            duplicates=len(duplicates),
            fatal_error=f"Bulk write failed with {len(others)} non-duplicate error(s): {details}",
        )

    return BulkWriteSummary(inserted=outcome.inserted_count, duplicates=len(duplicates))
