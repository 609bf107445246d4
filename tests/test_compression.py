"""Tests for account_ingest.services.compression"""

from __future__ import annotations

import gzip
import io

import pytest

from account_ingest.services.compression import CompressionSupport


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("accounts.csv.gz", True),
        ("ACCOUNTS.CSV.GZ", True),
        ("accounts.csv", False),
        ("accounts.gz.csv", False),
        (None, False),
    ],
)
def test_is_gzip_filename(filename, expected):
    assert CompressionSupport.is_gzip_filename(filename) is expected


def test_plain_file_is_passed_through():
    decoded = CompressionSupport().decode(io.BytesIO(b"h\n1,A\n"), "accounts.csv")

    assert decoded.read() == b"h\n1,A\n"


def test_gzip_file_is_decompressed():
    payload = gzip.compress(b"h\n1,A\n")

    decoded = CompressionSupport().decode(io.BytesIO(payload), "accounts.csv.gz")

    assert decoded.read() == b"h\n1,A\n"


def test_concatenated_gzip_members_are_read_to_the_end():
    payload = gzip.compress(b"h\n1,A\n") + gzip.compress(b"2,B\n")

    decoded = CompressionSupport().decode(io.BytesIO(payload), "accounts.csv.gz")

    assert decoded.read() == b"h\n1,A\n2,B\n"


def test_gzip_payload_under_plain_name_is_not_decompressed():
    payload = gzip.compress(b"h\n1,A\n")

    decoded = CompressionSupport().decode(io.BytesIO(payload), "accounts.csv")

    assert decoded.read() == payload


def test_unbuffered_stream_is_wrapped(tmp_path):
    path = tmp_path / "raw.csv"
    path.write_bytes(b"h\n1,A\n")

    with open(path, "rb", buffering=0) as raw:
        decoded = CompressionSupport().decode(raw, "raw.csv")
        assert isinstance(decoded, io.BufferedReader)
        assert decoded.read() == b"h\n1,A\n"
