"""file-report-server: FastAPI application entry point."""

from __future__ import annotations

import datetime
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .audit import AuditRecorder
from .config import ServerConfig, load_config
from .errors import StorageFailure
from .ingestion import IngestionEngine
from .logging_setup import setup_logging
from .models import HealthStatus
from .queries import QueryService
from .routers import audit, hosts, ingest
from .store import ReportStore, SQLiteReportStore

logger = logging.getLogger(__name__)


def create_app(
    config: ServerConfig | None = None,
    store: ReportStore | None = None,
) -> FastAPI:
    """Build the application.

    *store* defaults to a ``SQLiteReportStore`` on ``config.db_path``; pass
    another ``ReportStore`` to run the API against a different backend.
    """
    config = config or load_config()
    setup_logging(config.log_level)

    # ── Lifespan ──────────────────────────────────────────────────────────────

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        report_store = store or SQLiteReportStore(config.db_path)
        await report_store.init()
        recorder = AuditRecorder(report_store, config.audit_log_path)

        app.state.config = config
        app.state.store = report_store
        app.state.engine = IngestionEngine(report_store, recorder)
        app.state.queries = QueryService(report_store)

        logger.info("Database: %s", config.db_path)
        logger.info("Audit log: %s", config.audit_log_path or "(disabled)")
        yield

    # ── Application ───────────────────────────────────────────────────────────

    app = FastAPI(
        title="file-report-server",
        description=(
            "Receives directory inventory reports from agents, stores new or "
            "changed reports, and exposes host summaries, report history and "
            "the ingestion audit trail."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.include_router(ingest.router)
    app.include_router(hosts.router)
    app.include_router(audit.router)

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", response_model=HealthStatus, tags=["meta"], summary="Health check")
    async def health() -> HealthStatus:
        database = "healthy"
        try:
            await app.state.store.ping()
        except StorageFailure as exc:
            database = f"unhealthy: {exc}"
        return HealthStatus(
            status="healthy",
            time=datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds"),
            database=database,
        )

    return app


# ``uvicorn report_server.main:app`` entry point, configured from the environment.
app = create_app()
