"""Tests for account_ingest.services.job_scheduler"""

from __future__ import annotations

import threading

from account_ingest.services.job_scheduler import ThreadPerJobScheduler


def test_each_job_runs_on_its_own_named_thread():
    scheduler = ThreadPerJobScheduler()
    seen = []
    lock = threading.Lock()

    def record(value):
        with lock:
            seen.append((value, threading.current_thread().name))

    scheduler.submit("job-1", record, "a")
    scheduler.submit("job-2", record, "b")
    scheduler.close(timeout=5)

    assert sorted(value for value, _ in seen) == ["a", "b"]
    names = {name for _, name in seen}
    assert names == {"ingestion-0", "ingestion-1"}


def test_submit_returns_before_job_finishes():
    scheduler = ThreadPerJobScheduler()
    release = threading.Event()
    finished = threading.Event()

    def job():
        release.wait(5)
        finished.set()

    scheduler.submit("job-1", job)
    assert not finished.is_set()

    release.set()
    scheduler.close(timeout=5)
    assert finished.is_set()


def test_unhandled_error_is_logged(caplog):
    scheduler = ThreadPerJobScheduler(name_prefix="worker-")

    def boom():
        raise RuntimeError("boom")

    scheduler.submit("job-1", boom)
    scheduler.close(timeout=5)

    assert "Unhandled error in ingestion thread" in caplog.text
