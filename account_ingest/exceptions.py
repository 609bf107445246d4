"""
Exceptions raised by the ingestion service.
"""


class IngestionError(Exception):
    """Base class for ingestion errors."""


class IngestionRequestError(IngestionError):
    """A submission was rejected before any job was created."""


class IngestionValidationError(IngestionRequestError):
    """The submission did not contain a usable file."""


class JobConflictError(IngestionRequestError):
    """Another ingestion job is already pending or running."""


class FileProcessingError(IngestionError):
    """
    A file could not be ingested.
    Fatal to the file being processed and to the job it belongs to.
    """


class SpoolStorageError(IngestionError, OSError):
    """Uploaded bytes could not be spooled or read back."""
