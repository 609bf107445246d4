"""
tests/helpers.py

Schedulers that run jobs on the calling thread and builders for CSV payloads.
"""

from __future__ import annotations

import gzip
import io
from typing import Callable, List, Optional, Tuple

from account_ingest.orchestrator import IncomingFile
from account_ingest.services.job_scheduler import JobScheduler

HEADER = "accountNumber,productCode"


class InlineJobScheduler(JobScheduler):
    """Runs each job synchronously inside submit()."""

    def __init__(self) -> None:
        self.submitted: List[str] = []

    def submit(self, job_id: str, fn: Callable[..., None], *args) -> None:
        self.submitted.append(job_id)
        fn(*args)

    def close(self, timeout: Optional[float] = None) -> None:
        return None


class DeferredJobScheduler(JobScheduler):
    """Holds jobs until run_all() is called, leaving them PENDING meanwhile."""

    def __init__(self) -> None:
        self.pending: List[Tuple[str, Callable[..., None], tuple]] = []

    def submit(self, job_id: str, fn: Callable[..., None], *args) -> None:
        self.pending.append((job_id, fn, args))

    def run_all(self) -> None:
        while self.pending:
            _, fn, args = self.pending.pop(0)
            fn(*args)

    def close(self, timeout: Optional[float] = None) -> None:
        self.run_all()


class FailingJobScheduler(JobScheduler):
    def submit(self, job_id: str, fn: Callable[..., None], *args) -> None:
        raise RuntimeError("executor rejected the job")

    def close(self, timeout: Optional[float] = None) -> None:
        return None


def csv_bytes(*rows: str, header: Optional[str] = HEADER) -> bytes:
    lines = ([header] if header is not None else []) + list(rows)
    return ("\n".join(lines) + "\n").encode("utf-8")


def gzip_bytes(data: bytes) -> bytes:
    return gzip.compress(data)


def incoming(filename: Optional[str], data: bytes) -> IncomingFile:
    return IncomingFile(filename=filename, stream=io.BytesIO(data))
