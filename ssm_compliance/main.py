"""
SSM Compliance FastAPI application entry point.

Sweep: obligations → deadlines → score → alerts → notifications
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from ssm_compliance import __version__
from ssm_compliance.config import Settings, get_settings
from ssm_compliance.db.session import check_db_connection, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _warn_on_incomplete_config(settings: Settings) -> None:
    if not settings.internal_job_token:
        logger.warning("INTERNAL_JOB_TOKEN is not set; /internal endpoints will reject all calls")
    if not (settings.smtp_host or settings.twilio_account_sid or settings.push_gateway_url):
        logger.warning("No notification provider configured; alerts will be recorded but not delivered")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Verify the database on startup, dispose the pool on shutdown."""
    logger.info("SSM Compliance %s starting", __version__)
    try:
        try:
            check_db_connection()
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise
        logger.info("Database connection verified")
        _warn_on_incomplete_config(get_settings())
        yield
    finally:
        engine.dispose()
        logger.info("SSM Compliance stopped, database pool closed")


def health():
    """Liveness plus database reachability. 503 when the database is down."""
    try:
        check_db_connection()
    except Exception as e:
        logger.warning("Health check failed: %s", e)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "version": __version__, "database": "disconnected"},
        )
    return {"status": "ok", "version": __version__, "database": "connected"}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    from ssm_compliance.api.alerts import router as alerts_router
    from ssm_compliance.api.compliance import router as compliance_router
    from ssm_compliance.api.internal import router as internal_router

    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.include_router(compliance_router, prefix="/api/organizations", tags=["compliance"])
    app.include_router(alerts_router, prefix="/api/alerts", tags=["alerts"])
    # Cron and scripts, token-authenticated
    app.include_router(internal_router, tags=["internal"])
    app.add_api_route("/health", health, methods=["GET"], tags=["health"])
    return app


app = create_app()
