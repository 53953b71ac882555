from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing variable so the operator can
    fix all problems in one restart cycle.

    Rules:
    - No empty-string values are accepted.
    - The LLM API key check is skipped only when LLM_ADAPTER=mock.
    - Auth needs either AUTH_JWKS_URL or AUTH_JWT_SECRET.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    if not os.getenv("DATABASE_URL", "").strip():
        errors.append("DATABASE_URL is not set.")

    # --- LLM API key ----------------------------------------------------
    adapter = os.getenv("LLM_ADAPTER", "openai").strip().lower()
    if adapter != "mock" and not os.getenv("OPENROUTER_API_KEY", "").strip():
        errors.append(
            "OPENROUTER_API_KEY is not set. Set it or use LLM_ADAPTER=mock. "
            "Empty strings are not permitted."
        )

    # --- Nango ----------------------------------------------------------
    if not os.getenv("NANGO_SECRET_KEY", "").strip():
        errors.append("NANGO_SECRET_KEY is not set.")

    # --- Auth -----------------------------------------------------------
    if not os.getenv("AUTH_JWKS_URL", "").strip() and not os.getenv("AUTH_JWT_SECRET", "").strip():
        errors.append("No token verifier configured. Set AUTH_JWKS_URL or AUTH_JWT_SECRET.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, run the poll scheduler when enabled."""
    log = logging.getLogger(__name__)
    _check_db()
    log.info("Database connectivity confirmed")
    _check_schema()
    log.info("Database schema validated")

    from app.config import get_scheduler_settings
    from app.scheduler.jobs import build_scheduler

    scheduler = None
    if get_scheduler_settings().enabled:
        scheduler = build_scheduler()
        scheduler.start()
        log.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    else:
        log.info("Scheduler disabled; set ENABLE_CRON_JOBS=true to poll metrics in-process")
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=True)
            log.info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="orgpulse API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import (
        cron_router,
        dashboard_router,
        feedback_router,
        goals_router,
        integrations_router,
        manual_metrics_router,
        metrics_router,
        nango_webhook_router,
        organization_router,
        pipeline_router,
        public_view_router,
        roles_router,
        teams_router,
        transformers_router,
    )

    application.include_router(teams_router)
    application.include_router(roles_router)
    application.include_router(metrics_router)
    application.include_router(manual_metrics_router)
    application.include_router(goals_router)
    application.include_router(pipeline_router)
    application.include_router(transformers_router)
    application.include_router(dashboard_router)
    application.include_router(integrations_router)
    application.include_router(feedback_router)
    application.include_router(public_view_router)
    application.include_router(nango_webhook_router)
    application.include_router(organization_router)
    application.include_router(cron_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
