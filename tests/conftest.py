"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database, local spool storage under
tmp_path and an orchestrator that runs jobs on the calling thread.
"""

from __future__ import annotations

import pytest
from sqlalchemy.pool import StaticPool

from account_ingest.app.db.database import create_db_engine, create_session_factory, init_db
from account_ingest.orchestrator import JobOrchestrator
from account_ingest.services.spool_storage import LocalSpoolStorage
from tests.helpers import InlineJobScheduler


@pytest.fixture
def engine():
    db_engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def spool_dir(tmp_path):
    directory = tmp_path / "spool"
    directory.mkdir()
    return directory


@pytest.fixture
def spool_storage(spool_dir):
    return LocalSpoolStorage(str(spool_dir))


@pytest.fixture
def scheduler():
    return InlineJobScheduler()


@pytest.fixture
def orchestrator(session_factory, spool_storage, scheduler):
    """Small batches and progress intervals so boundaries are hit with a few rows."""
    return JobOrchestrator(
        session_factory,
        spool_storage,
        scheduler,
        batch_size=3,
        progress_update_interval=2,
        export_fetch_size=2,
    )
