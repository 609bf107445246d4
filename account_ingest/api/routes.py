"""Ingestion API: submit files, poll and reset jobs, export stored records.

  POST /api/v1/ingestions                  start a job for one or more files
  GET  /api/v1/ingestions/{job_id}         poll a job
  POST /api/v1/ingestions/{job_id}/reset   put a job back to PENDING
  GET  /api/v1/account-products/export     stream every stored record as CSV
"""

from typing import List, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, Response, UploadFile
from fastapi.responses import StreamingResponse

from account_ingest.exceptions import (
    IngestionValidationError,
    JobConflictError,
    SpoolStorageError,
)
from account_ingest.orchestrator import IncomingFile, JobOrchestrator
from account_ingest.schemas.job import JobCreatedResponse, JobSnapshot
from account_ingest.app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()
health_router = APIRouter()

# Wired in during lifespan
_orchestrator: Optional[JobOrchestrator] = None


def set_orchestrator(orchestrator: Optional[JobOrchestrator]) -> None:
    global _orchestrator
    _orchestrator = orchestrator


def _require_orchestrator() -> JobOrchestrator:
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Ingestion service not ready")
    return _orchestrator


@health_router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/ingestions", status_code=202, response_model=JobCreatedResponse)
def upload(
    request: Request,
    response: Response,
    files: Optional[List[UploadFile]] = File(None),
    delete_existing: bool = Query(False, alias="deleteExisting"),
):
    """Accept files and start an ingestion job. Returns before any row is ingested."""
    orchestrator = _require_orchestrator()

    incoming = [IncomingFile(filename=uploaded.filename, stream=uploaded.file) for uploaded in files or []]
    try:
        snapshot = orchestrator.enqueue(incoming, delete_existing)
    except (IngestionValidationError, JobConflictError) as exc:
        status_code = 409 if isinstance(exc, JobConflictError) else 400
        logger.warning("Ingestion request rejected", extra={"reason": str(exc), "status_code": status_code})
        raise HTTPException(status_code=status_code, detail=str(exc))
    except SpoolStorageError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to buffer uploaded files: {exc}")

    response.headers["Location"] = str(request.url_for("get_job_status", job_id=snapshot.job_id))
    return JobCreatedResponse.from_snapshot(snapshot)


@router.get("/ingestions/{job_id}", response_model=JobSnapshot)
def get_job_status(job_id: str):
    """Full snapshot of a job."""
    job = _require_orchestrator().find_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/ingestions/{job_id}/reset", response_model=JobSnapshot)
def reset_job(job_id: str):
    job = _require_orchestrator().reset_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    logger.info("Reset ingestion job to PENDING state", extra={"job_id": job_id})
    return job


@router.get("/account-products/export")
def export_account_products(filename: str = "account-products.csv"):
    """Stream all account products as uncompressed CSV."""
    orchestrator = _require_orchestrator()
    return StreamingResponse(
        orchestrator.iter_export_chunks(),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
