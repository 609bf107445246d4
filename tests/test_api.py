"""Tests for the ingestion HTTP API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from account_ingest.app.main import create_app
from account_ingest.orchestrator import JobOrchestrator
from tests.helpers import DeferredJobScheduler, csv_bytes


def _files(*entries):
    return [("files", (name, data, "text/csv")) for name, data in entries]


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestUpload:

    def test_upload_accepts_job(self, client):
        response = client.post(
            "/api/v1/ingestions",
            files=_files(("a.csv", csv_bytes("1,A", "2,B"))),
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "PENDING"
        assert body["fileCount"] == 1
        assert body["deleteExisting"] is False
        assert response.headers["location"].endswith(f"/api/v1/ingestions/{body['jobId']}")

    def test_delete_existing_flag(self, client):
        response = client.post(
            "/api/v1/ingestions",
            params={"deleteExisting": "true"},
            files=_files(("a.csv", csv_bytes("1,A"))),
        )

        assert response.status_code == 202
        assert response.json()["deleteExisting"] is True

    def test_empty_upload_is_bad_request(self, client):
        response = client.post("/api/v1/ingestions", files=_files(("empty.csv", b"")))

        assert response.status_code == 400
        assert "At least one file" in response.json()["detail"]

    def test_conflict_while_job_is_pending(self, session_factory, spool_storage):
        orchestrator = JobOrchestrator(session_factory, spool_storage, DeferredJobScheduler())

        with TestClient(create_app(orchestrator)) as client:
            first = client.post("/api/v1/ingestions", files=_files(("a.csv", csv_bytes("1,A"))))
            second = client.post("/api/v1/ingestions", files=_files(("b.csv", csv_bytes("2,B"))))

        assert first.status_code == 202
        assert second.status_code == 409
        assert "already running" in second.json()["detail"]


class TestJobStatus:

    def test_status_of_finished_job(self, client):
        created = client.post(
            "/api/v1/ingestions",
            files=_files(("a.csv", csv_bytes("1,A", "1,A", ",B")), ("b.csv", csv_bytes("2,B"))),
        ).json()

        response = client.get(f"/api/v1/ingestions/{created['jobId']}")

        assert response.status_code == 200
        job = response.json()
        assert job["status"] == "SUCCEEDED"
        assert job["insertedRecords"] == 2
        assert job["duplicateRecords"] == 1
        assert job["invalidRecords"] == 1
        assert job["processedRecords"] == 4
        assert job["progressPercent"] == 100
        assert [f["filename"] for f in job["files"]] == ["a.csv", "b.csv"]
        assert job["files"][0]["status"] == "SUCCEEDED"

    def test_unknown_job_is_not_found(self, client):
        assert client.get("/api/v1/ingestions/missing").status_code == 404
        assert client.post("/api/v1/ingestions/missing/reset").status_code == 404

    def test_reset(self, client):
        created = client.post("/api/v1/ingestions", files=_files(("a.csv", csv_bytes("1,A")))).json()

        response = client.post(f"/api/v1/ingestions/{created['jobId']}/reset")

        assert response.status_code == 200
        assert response.json()["status"] == "PENDING"
        assert response.json()["files"] == []


def test_export(client):
    client.post("/api/v1/ingestions", files=_files(("a.csv", csv_bytes("2,B", "1,A", "3,C"))))

    response = client.get("/api/v1/account-products/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=account-products.csv" in response.headers["content-disposition"]
    assert response.text.splitlines() == ["accountNumber,productCode", "1,A", "2,B", "3,C"]
