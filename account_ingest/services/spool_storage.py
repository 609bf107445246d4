"""
Spooling of uploaded files until their ingestion job has run.

Uploads are copied out of the request before the job is scheduled, so the
background task never depends on the request's lifetime. Spooled bytes are
deleted once the job finishes, whatever its outcome.
"""
import io
import os
import shutil
import tempfile
import uuid
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from account_ingest.exceptions import SpoolStorageError
from account_ingest.settings import Settings, settings as default_settings
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)

UNKNOWN_FILENAME = "unknown"
_COPY_BUFFER_SIZE = 1024 * 1024


def resolve_filename(original_filename: Optional[str]) -> str:
    """Trimmed upload name, or UNKNOWN_FILENAME when none was sent."""
    if original_filename is None:
        return UNKNOWN_FILENAME
    trimmed = original_filename.strip()
    return trimmed or UNKNOWN_FILENAME


class SpooledFile(ABC):
    """Bytes of one uploaded file held for a pending job."""

    def __init__(self, original_filename: str, location: str, size: int):
        self.original_filename = original_filename
        self.location = location
        self.size = size

    @abstractmethod
    def open(self) -> BinaryIO:
        """Open a fresh binary stream over the spooled bytes."""
        ...

    @abstractmethod
    def delete(self) -> None:
        ...

    def delete_silently(self) -> None:
        """Delete the spooled bytes, logging instead of raising on failure."""
        try:
            self.delete()
        except (OSError, BotoCoreError, ClientError) as e:
            logger.warning(
                "Failed to delete spooled file",
                extra={"location": self.location, "error": str(e)}
            )

    def __repr__(self):
        return f"<{type(self).__name__}(original_filename={self.original_filename}, location={self.location})>"


class SpoolStorage(ABC):
    """Durable byte storage with delete-on-cleanup."""

    @abstractmethod
    def spool(self, original_filename: Optional[str], stream: BinaryIO) -> SpooledFile:
        """
        Copy an upload into storage.

        Args:
            original_filename: Name sent by the client, may be blank
            stream: Upload contents

        Returns:
            SpooledFile describing the stored copy

        Raises:
            SpoolStorageError: If the bytes cannot be stored
        """
        ...


class LocalSpooledFile(SpooledFile):

    def open(self) -> BinaryIO:
        try:
            return open(self.location, "rb")
        except OSError as e:
            raise SpoolStorageError(f"Failed to read buffered file {self.original_filename}: {e}") from e

    def delete(self) -> None:
        if os.path.exists(self.location):
            os.remove(self.location)


class LocalSpoolStorage(SpoolStorage):
    """Spools uploads to temporary files on the local filesystem."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory
        if directory:
            os.makedirs(directory, exist_ok=True)

    def spool(self, original_filename: Optional[str], stream: BinaryIO) -> SpooledFile:
        fd, path = tempfile.mkstemp(prefix="ingestion-", suffix=".upload", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as target:
                shutil.copyfileobj(stream, target, _COPY_BUFFER_SIZE)
            size = os.path.getsize(path)
        except OSError as e:
            if os.path.exists(path):
                os.remove(path)
            raise SpoolStorageError(f"Failed to buffer uploaded file {original_filename}: {e}") from e

        name = resolve_filename(original_filename)
        if name == UNKNOWN_FILENAME:
            name = os.path.basename(path)

        logger.debug(
            "Upload spooled to local file",
            extra={"upload_filename": name, "location": path, "size": size}
        )
        return LocalSpooledFile(name, path, size)


class _StreamingBodyReader(io.RawIOBase):
    """Raw stream view over an S3 response body."""

    def __init__(self, body):
        self._body = body

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._body.read(len(buffer))
        size = len(chunk)
        buffer[:size] = chunk
        return size

    def close(self) -> None:
        if not self.closed:
            self._body.close()
        super().close()


class S3SpooledFile(SpooledFile):

    def __init__(self, original_filename: str, location: str, size: int, s3_client, bucket_name: str):
        super().__init__(original_filename, location, size)
        self._s3_client = s3_client
        self._bucket_name = bucket_name

    def open(self) -> BinaryIO:
        try:
            response = self._s3_client.get_object(Bucket=self._bucket_name, Key=self.location)
        except (BotoCoreError, ClientError) as e:
            raise SpoolStorageError(f"Failed to read buffered file {self.original_filename}: {e}") from e
        return io.BufferedReader(_StreamingBodyReader(response["Body"]), _COPY_BUFFER_SIZE)

    def delete(self) -> None:
        self._s3_client.delete_object(Bucket=self._bucket_name, Key=self.location)


class S3SpoolStorage(SpoolStorage):
    """Spools uploads to an S3 bucket so any worker process can read them."""

    def __init__(self, bucket_name: str, key_prefix: str = "", region: Optional[str] = None, s3_client=None):
        """
        Initialize S3 spool storage.

        Args:
            bucket_name: Bucket holding spooled uploads
            key_prefix: Prefix for spooled object keys
            region: AWS region for the default client
            s3_client: Preconfigured boto3 S3 client
        """
        self.bucket_name = bucket_name
        self.key_prefix = key_prefix

        if s3_client is not None:
            self.s3_client = s3_client
            return

        try:
            self.s3_client = boto3.client("s3", region_name=region)
            logger.debug(
                "S3 client initialized",
                extra={"bucket_name": bucket_name, "region": region}
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to initialize S3 client",
                extra={"region": region, "error": str(e)},
                exc_info=True
            )
            raise

    def spool(self, original_filename: Optional[str], stream: BinaryIO) -> SpooledFile:
        key = f"{self.key_prefix}ingestion-{uuid.uuid4().hex}.upload"
        counter = _CountingReader(stream)
        try:
            self.s3_client.upload_fileobj(counter, self.bucket_name, key)
        except (BotoCoreError, ClientError) as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown") if isinstance(e, ClientError) else "Unknown"
            logger.error(
                "Failed to spool upload to S3",
                extra={"bucket_name": self.bucket_name, "s3_key": key, "error_code": error_code, "error": str(e)},
                exc_info=True
            )
            raise SpoolStorageError(f"Failed to buffer uploaded file {original_filename}: {error_code}") from e

        name = resolve_filename(original_filename)
        if name == UNKNOWN_FILENAME:
            name = key.rsplit("/", 1)[-1]

        logger.debug(
            "Upload spooled to S3",
            extra={"upload_filename": name, "bucket_name": self.bucket_name, "s3_key": key, "size": counter.count}
        )
        return S3SpooledFile(name, key, counter.count, self.s3_client, self.bucket_name)


class _CountingReader(io.RawIOBase):
    """Counts the bytes read through it."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self.count = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        self.count += len(chunk)
        return chunk

    def readinto(self, buffer) -> int:
        chunk = self.read(len(buffer))
        buffer[:len(chunk)] = chunk
        return len(chunk)


def build_spool_storage(config: Settings = default_settings) -> SpoolStorage:
    """
    Create the spool storage selected by SPOOL_BACKEND.

    Args:
        config: Application settings

    Returns:
        Configured SpoolStorage
    """
    backend = config.SPOOL_BACKEND.lower()
    if backend == "local":
        return LocalSpoolStorage(config.SPOOL_DIR)
    if backend == "s3":
        if not config.SPOOL_BUCKET_NAME:
            raise ValueError("SPOOL_BUCKET_NAME is required when SPOOL_BACKEND is s3")
        return S3SpoolStorage(config.SPOOL_BUCKET_NAME, config.SPOOL_KEY_PREFIX, config.AWS_REGION)
    raise ValueError(f"Unsupported SPOOL_BACKEND: {config.SPOOL_BACKEND}")
