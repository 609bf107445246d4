"""
Value objects passed between the ingestor, the classifier and the orchestrator.
"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class FileIngestionResult:
    """Outcome of ingesting one file."""
    filename: str
    total_records: int
    inserted_records: int
    duplicate_records: int
    invalid_records: int
    duration_millis: int


@dataclass(frozen=True)
class ProgressSnapshot:
    """Counters reported while a file is being ingested."""
    processed: int = 0
    inserted: int = 0
    duplicates: int = 0
    invalid: int = 0

    def plus(self, other: "ProgressSnapshot") -> "ProgressSnapshot":
        return ProgressSnapshot(
            processed=self.processed + other.processed,
            inserted=self.inserted + other.inserted,
            duplicates=self.duplicates + other.duplicates,
            invalid=self.invalid + other.invalid,
        )

    @classmethod
    def from_result(cls, result: FileIngestionResult) -> "ProgressSnapshot":
        return cls(
            processed=result.total_records,
            inserted=result.inserted_records,
            duplicates=result.duplicate_records,
            invalid=result.invalid_records,
        )


@dataclass(frozen=True)
class WriteError:
    """A single failed operation of a bulk insert."""
    index: int
    code: str
    message: str


@dataclass(frozen=True)
class BulkWriteOutcome:
    """What the store reported for one batched, unordered insert."""
    attempted: int
    inserted_count: int
    write_errors: List[WriteError] = field(default_factory=list)


@dataclass(frozen=True)
class BulkWriteSummary:
    """Classified outcome of a bulk insert."""
    inserted: int = 0
    duplicates: int = 0
    fatal_error: Optional[str] = None

    @property
    def is_fatal(self) -> bool:
        return self.fatal_error is not None
