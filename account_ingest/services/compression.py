"""
Transparent gzip decoding for uploaded files.
"""
import gzip
import io
from typing import BinaryIO, Optional

from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)

BUFFER_SIZE = 64 * 1024
GZIP_SUFFIX = ".gz"


class CompressionSupport:
    """Decides from the filename whether a stream must be gunzipped."""

    @staticmethod
    def is_gzip_filename(filename: Optional[str]) -> bool:
        return filename is not None and filename.lower().endswith(GZIP_SUFFIX)

    def decode(self, stream: BinaryIO, filename: Optional[str]) -> BinaryIO:
        """
        Wrap a raw byte stream so that reads return decoded bytes.

        Detection is by filename suffix only; a gzip payload under another
        name is passed through as-is.

        Args:
            stream: Raw byte stream
            filename: Original filename of the upload

        Returns:
            Buffered stream, decompressed when the name ends in .gz
        """
        buffered = stream if isinstance(stream, io.BufferedIOBase) else io.BufferedReader(stream, BUFFER_SIZE)
        if self.is_gzip_filename(filename):
            logger.debug("Decompressing gzip file", extra={"upload_filename": filename})
            # GzipFile reads concatenated members until EOF
            return gzip.GzipFile(fileobj=buffered, mode="rb")

        logger.debug("Streaming file without decompression", extra={"upload_filename": filename})
        return buffered
