"""Job scheduler interface and thread-per-job implementation."""

import itertools
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)


class JobScheduler(ABC):
    """Runs ingestion jobs off the request path."""

    @abstractmethod
    def submit(self, job_id: str, fn: Callable[..., None], *args) -> None:
        """Schedule fn(*args) for a job and return immediately."""
        ...

    @abstractmethod
    def close(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled jobs to finish."""
        ...


class ThreadPerJobScheduler(JobScheduler):
    """
    Starts one new thread per job.

    There is no pool and no queue: every accepted job runs immediately on
    its own thread. Admission control keeps the number of concurrent jobs at
    one in practice.
    """

    def __init__(self, name_prefix: str = "ingestion-"):
        self._name_prefix = name_prefix
        self._counter = itertools.count()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def submit(self, job_id: str, fn: Callable[..., None], *args) -> None:
        thread = threading.Thread(
            target=self._run,
            args=(job_id, fn, args),
            name=f"{self._name_prefix}{next(self._counter)}",
            daemon=True,
        )
        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        logger.info("Job scheduled", extra={"job_id": job_id, "worker": thread.name})

    def close(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Ingestion thread still running at shutdown", extra={"worker": thread.name})

    @staticmethod
    def _run(job_id: str, fn: Callable[..., None], args: tuple) -> None:
        try:
            fn(*args)
        except Exception:
            logger.error("Unhandled error in ingestion thread", extra={"job_id": job_id}, exc_info=True)
