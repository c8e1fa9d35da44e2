"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from payroll_tax.api.dependencies import DbSession
from payroll_tax.config import get_settings
from payroll_tax.models import TaxJurisdiction

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    engine_version: str
    active_jurisdictions: int | None = None


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check API and database health.

    Reports how many active jurisdictions have rules available; zero means
    the database is reachable but has not been seeded.
    """
    active = None
    try:
        active = await db.scalar(
            select(func.count())
            .select_from(TaxJurisdiction)
            .where(TaxJurisdiction.is_active.is_(True))
        )
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database health check failed: %s", e)

    db_status = "unhealthy" if active is None else "healthy"
    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        engine_version=get_settings().engine_version,
        active_jurisdictions=active,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
