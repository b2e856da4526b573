"""Health check endpoints."""

import logging
from datetime import datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from dtr_engine.api.dependencies import ClockDep, DbSession
from dtr_engine.database import missing_tables

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str


class ReadinessResponse(BaseModel):
    """Readiness: the database answers and holds every DTR table."""

    status: str
    missing_tables: list[str] = []


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, clock: ClockDep) -> HealthResponse:
    """Check API and database health."""
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        timestamp=clock(),
        database=database,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: DbSession, response: Response) -> ReadinessResponse:
    """Ready once the schema exists; 503 until then."""
    try:
        missing = await missing_tables(db)
    except SQLAlchemyError:
        logger.warning("Readiness check could not reach the database", exc_info=True)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="unavailable")

    if missing:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(status="not_ready", missing_tables=missing)
    return ReadinessResponse(status="ready")


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
