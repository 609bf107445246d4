"""
Streaming ingestion of one account/product CSV file.

Rows are decoded, parsed, validated and collected into insert-only batches.
A batch is written as soon as it is full, so memory holds at most one batch
while the store acknowledges the previous write.
"""
import csv
import io
import time
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterable, List, Optional, Sequence

from account_ingest.exceptions import FileProcessingError
from account_ingest.models.job import UNKNOWN_TOTAL
from account_ingest.models.results import (
    BulkWriteOutcome,
    BulkWriteSummary,
    FileIngestionResult,
    ProgressSnapshot,
)
from account_ingest.services.bulk_write_classifier import classify_bulk_write
from account_ingest.services.compression import CompressionSupport
from account_ingest.settings import settings
from account_ingest.validators.row_validator import RowValidator
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]
WriteBatch = Callable[[List[dict]], BulkWriteOutcome]

# Failures while reading, decompressing or parsing a file
READ_ERRORS = (OSError, EOFError, UnicodeDecodeError, zlib.error, csv.Error)

_COUNT_CHUNK_SIZE = 1024 * 1024


@dataclass
class FileAccumulator:
    """Running counters of one file plus the row count of the last progress report."""
    interval: int
    processed: int = 0
    inserted: int = 0
    duplicates: int = 0
    invalid: int = 0
    last_reported: int = 0

    def record_write(self, summary: BulkWriteSummary) -> None:
        self.inserted += summary.inserted
        self.duplicates += summary.duplicates

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            processed=self.processed,
            inserted=self.inserted,
            duplicates=self.duplicates,
            invalid=self.invalid,
        )


def progress_due(accumulator: FileAccumulator, force: bool = False) -> bool:
    """True when the processed count has crossed the next reporting watermark."""
    return force or accumulator.processed >= accumulator.last_reported + accumulator.interval


class AccountProductCsvIngestor:
    """Ingests account/product CSV files through a batched writer."""

    def __init__(
        self,
        write_batch: WriteBatch,
        compression: Optional[CompressionSupport] = None,
        batch_size: int = settings.INGESTION_BATCH_SIZE,
        progress_update_interval: int = settings.PROGRESS_UPDATE_INTERVAL,
        delimiter: str = settings.CSV_DELIMITER,
        encoding: str = settings.CSV_ENCODING,
    ):
        """
        Initialize ingestor.

        Args:
            write_batch: Callable performing an unordered bulk insert of row dicts
            compression: Compression detector, a default instance when omitted
            batch_size: Rows per bulk insert
            progress_update_interval: Processed rows between progress reports
            delimiter: CSV field delimiter
            encoding: Text encoding of the decoded files
        """
        self.write_batch = write_batch
        self.compression = compression or CompressionSupport()
        self.batch_size = max(1, batch_size)
        self.progress_update_interval = max(1, progress_update_interval)
        self.delimiter = delimiter
        self.encoding = encoding

    def ingest(
        self,
        filename: str,
        raw_stream: BinaryIO,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> FileIngestionResult:
        """
        Ingest one file.

        Args:
            filename: Original filename, used for gzip detection and reporting
            raw_stream: Raw (possibly compressed) bytes of the file
            progress_callback: Receives counter snapshots while the file is processed

        Returns:
            FileIngestionResult with the final counters

        Raises:
            FileProcessingError: On read/decode/parse failures or a fatal bulk write
        """
        start = time.monotonic()
        accumulator = FileAccumulator(interval=self.progress_update_interval)

        try:
            decoded = self.compression.decode(raw_stream, filename)
            with io.TextIOWrapper(decoded, encoding=self.encoding, newline="") as reader:
                rows = csv.reader(reader, delimiter=self.delimiter)
                self._parse_rows(rows, accumulator, progress_callback)
        except READ_ERRORS as e:
            raise FileProcessingError(f"Failed to process CSV for file {filename}: {e}") from e

        self._maybe_report(accumulator, progress_callback, force=True)

        result = FileIngestionResult(
            filename=filename,
            total_records=accumulator.processed,
            inserted_records=accumulator.inserted,
            duplicate_records=accumulator.duplicates,
            invalid_records=accumulator.invalid,
            duration_millis=int((time.monotonic() - start) * 1000),
        )
        logger.info(
            "Completed ingestion for file",
            extra={
                "upload_filename": result.filename,
                "processed": result.total_records,
                "inserted": result.inserted_records,
                "duplicates": result.duplicate_records,
                "invalid": result.invalid_records,
                "duration_ms": result.duration_millis
            }
        )
        return result

    def estimate_record_count(self, open_stream: Callable[[], BinaryIO], filename: str) -> int:
        """
        Count data lines of a file without parsing it.

        Only used to size the progress denominator.

        Args:
            open_stream: Opens a fresh raw byte stream of the file
            filename: Original filename, used for gzip detection

        Returns:
            Line count minus the header, or UNKNOWN_TOTAL if the file cannot be read
        """
        try:
            with open_stream() as raw:
                decoded = self.compression.decode(raw, filename)
                lines = 0
                last_chunk = b""
                while True:
                    chunk = decoded.read(_COUNT_CHUNK_SIZE)
                    if not chunk:
                        break
                    lines += chunk.count(b"\n")
                    last_chunk = chunk
                if last_chunk and not last_chunk.endswith(b"\n"):
                    lines += 1
                return max(0, lines - 1)
        except READ_ERRORS as e:
            logger.warning(
                "Unable to estimate total records",
                extra={"upload_filename": filename, "error": str(e)}
            )
            return UNKNOWN_TOTAL

    def _parse_rows(
        self,
        rows: Iterable[Sequence[str]],
        accumulator: FileAccumulator,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        batch: List[dict] = []
        header_skipped = False

        for row in rows:
            if not row:
                continue
            if not header_skipped:
                header_skipped = True
                continue

            accumulator.processed += 1
            self._maybe_report(accumulator, progress_callback)

            validation = RowValidator.validate_row(row)
            if not validation.is_valid:
                accumulator.invalid += 1
                logger.debug(
                    "Skipping invalid row",
                    extra={"row_number": accumulator.processed, "reason": validation.message}
                )
                continue

            batch.append(validation.to_insert_params())
            if len(batch) >= self.batch_size:
                accumulator.record_write(self._flush(batch))
                batch = []
                self._maybe_report(accumulator, progress_callback)

        if batch:
            accumulator.record_write(self._flush(batch))

    def _flush(self, batch: List[dict]) -> BulkWriteSummary:
        summary = classify_bulk_write(self.write_batch(batch))
        if summary.is_fatal:
            raise FileProcessingError(summary.fatal_error)
        return summary

    @staticmethod
    def _maybe_report(
        accumulator: FileAccumulator,
        progress_callback: Optional[ProgressCallback],
        force: bool = False,
    ) -> None:
        if progress_callback is None or not progress_due(accumulator, force):
            return
        progress_callback(accumulator.snapshot())
        accumulator.last_reported = accumulator.processed
