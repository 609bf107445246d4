"""Tests for account_ingest.app.logging_config"""

from __future__ import annotations

import json
import logging

import pytest

from account_ingest.app.logging_config import CloudWatchJSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("account_ingest.test", logging.INFO, __file__, 10, "Job %s", ("done",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_lifts_extra_fields():
    payload = json.loads(CloudWatchJSONFormatter().format(_record(job_id="job-1", upload_filename="a.csv")))

    assert payload["message"] == "Job done"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "account_ingest.test"
    assert payload["job_id"] == "job-1"
    assert payload["upload_filename"] == "a.csv"
    assert "lineno" not in payload
    assert payload["timestamp"].endswith("Z")


def test_json_formatter_serializes_unknown_types():
    payload = json.loads(CloudWatchJSONFormatter().format(_record(path=object())))

    assert isinstance(payload["path"], str)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_installs_single_handler(restore_root_logger):
    root = setup_logging(level="debug", log_format="json")

    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, CloudWatchJSONFormatter)
    assert logging.getLogger("botocore").level == logging.WARNING


def test_setup_logging_text_format(restore_root_logger):
    root = setup_logging(level="warning", log_format="text")

    assert root.level == logging.WARNING
    assert not isinstance(root.handlers[0].formatter, CloudWatchJSONFormatter)
