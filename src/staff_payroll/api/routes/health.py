"""Liveness, readiness and database probes."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from staff_payroll import __version__
from staff_payroll.api.dependencies import DbSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    checked_at: datetime
    database: str


async def _probe_database(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database probe failed")
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Service and database health. Always 200; inspect ``status``."""
    reachable = await _probe_database(db)
    return HealthResponse(
        status="healthy" if reachable else "degraded",
        version=__version__,
        checked_at=datetime.now(timezone.utc),
        database="healthy" if reachable else "unreachable",
    )


@router.get("/ready")
async def readiness_check(db: DbSession, response: Response) -> dict[str, str]:
    """503 until the database answers."""
    if not await _probe_database(db):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
