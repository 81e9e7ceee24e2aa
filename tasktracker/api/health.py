from fastapi import APIRouter, Request, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tasktracker.api.schemas import (
    HealthResponse,
    HealthzResponse,
    ReadinessChecks,
    ReadyzResponse,
)
from tasktracker.core.config import get_settings
from tasktracker.core.logging import get_logger
from tasktracker.db.models import utc_now
from tasktracker.db.session import get_engine

router = APIRouter()
logger = get_logger("tasktracker.api.health")


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=utc_now())


@router.get("/healthz", response_model=HealthzResponse)
def healthz() -> HealthzResponse:
    settings = get_settings()
    return HealthzResponse(status="ok", service=settings.app_name, env=settings.app_env)


@router.get("/readyz", response_model=ReadyzResponse)
def readyz(request: Request, response: Response) -> ReadyzResponse:
    _ = get_settings()
    try:
        with get_engine(request).connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("readiness.database_unavailable")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadyzResponse(
            status="degraded",
            checks=ReadinessChecks(configuration="ok", database="unavailable"),
        )
    return ReadyzResponse(status="ready", checks=ReadinessChecks(configuration="ok", database="ok"))
