"""Health, readiness and liveness endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from hr_backoffice import __version__
from hr_backoffice.api.dependencies import DbSession
from hr_backoffice.models import Employee, EmployeeStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: datetime
    database: str
    active_employees: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report database reachability and the size of the active roster.

    A database failure degrades the response instead of failing it.
    """
    active: int | None = None
    try:
        active = await db.scalar(
            select(func.count()).select_from(Employee).where(Employee.status == EmployeeStatus.ACTIVE)
        )
    except SQLAlchemyError:
        logger.exception("Roster query failed during health check")

    return HealthResponse(
        status="healthy" if active is not None else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        database="healthy" if active is not None else "unhealthy",
        active_employees=active,
    )


@router.get("/ready")
async def readiness_check(db: DbSession) -> dict[str, str]:
    """Ready once the HR tables exist (run ``init-db`` first)."""
    try:
        await db.execute(select(Employee.employee_id).limit(1))
    except SQLAlchemyError:
        logger.warning("Readiness check failed: HR schema is not available")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="HR schema is not initialized",
        ) from None
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
