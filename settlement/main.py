"""
HR Transaction Settlement Core - application entry point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from settlement.api.router import api_router
from settlement.api.v1.escalations import scanner
from settlement.core.config import settings
from settlement.core.errors import (
    generic_exception_handler,
    http_exception_handler,
    settlement_exception_handler,
    validation_exception_handler,
)
from settlement.core.exceptions import SettlementError
from settlement.core.logging import setup_logging

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask the password in DATABASE_URL for safe logging."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "***"
    if parsed.scheme.startswith("sqlite") or not parsed.password:
        return url
    netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


app = FastAPI(
    title="HR Transaction Settlement Core",
    description="Approval chains, ledger effects and payroll settlement",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SettlementError, settlement_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))


@app.on_event("startup")
def start_escalation_job() -> None:
    if not settings.ESCALATION_JOB_ENABLED:
        logger.info("Escalation job disabled")
        return
    scanner.start(settings.ESCALATION_INTERVAL_SECONDS)


@app.on_event("shutdown")
def stop_escalation_job() -> None:
    scanner.stop()
