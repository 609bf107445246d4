"""Account product ingestion service - FastAPI application."""
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from account_ingest.api import routes
from account_ingest.app.db.database import SessionLocal, engine, init_db
from account_ingest.app.logging_config import get_logger, setup_logging
from account_ingest.orchestrator import JobOrchestrator
from account_ingest.services.job_scheduler import ThreadPerJobScheduler
from account_ingest.services.spool_storage import build_spool_storage
from account_ingest.settings import Settings, settings

logger = get_logger(__name__)


def build_orchestrator(config: Settings = settings) -> JobOrchestrator:
    """
    Wire the orchestrator against the configured database and spool storage.

    Args:
        config: Application settings

    Returns:
        Orchestrator running each job on its own thread
    """
    init_db(engine)
    return JobOrchestrator(
        SessionLocal,
        build_spool_storage(config),
        ThreadPerJobScheduler(),
        batch_size=config.INGESTION_BATCH_SIZE,
        progress_update_interval=config.PROGRESS_UPDATE_INTERVAL,
        export_fetch_size=config.EXPORT_FETCH_SIZE,
        delimiter=config.CSV_DELIMITER,
        encoding=config.CSV_ENCODING,
    )


def create_app(orchestrator: Optional[JobOrchestrator] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Orchestrator to serve; built from settings at startup when omitted

    Returns:
        Application with the ingestion and health routes mounted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = orchestrator or build_orchestrator()
        routes.set_orchestrator(active)
        logger.info(
            "Ingestion service started",
            extra={
                "spool_backend": settings.SPOOL_BACKEND,
                "batch_size": active.batch_size,
                "progress_update_interval": active.progress_update_interval
            }
        )

        yield

        logger.info("Shutting down ingestion service, waiting for running jobs")
        routes.set_orchestrator(None)
        active.scheduler.close()

    app = FastAPI(
        title="Account Product Ingestion Service",
        description="Bulk CSV ingestion of account/product pairs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(routes.health_router, tags=["health"])
    app.include_router(routes.router, prefix="/api/v1", tags=["ingestion"])
    return app


app = create_app()


def main():
    """Run the service with uvicorn."""
    setup_logging()
    logger.info(
        "Starting account product ingestion service",
        extra={"host": settings.API_HOST, "port": settings.API_PORT}
    )
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT, log_config=None)


if __name__ == "__main__":
    main()
