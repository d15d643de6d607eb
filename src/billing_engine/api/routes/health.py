"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from billing_engine.api.dependencies import BillComConfigDep, DbSession, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Database reachability plus whether Bill.com submission can work."""

    status: str
    timestamp: datetime
    database: str
    billcom: str


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, config_service: BillComConfigDep) -> HealthResponse:
    database = "healthy"
    billcom = "unknown"
    try:
        await db.execute(text("SELECT 1"))
        config_status = await config_service.status()
        billcom = "configured" if config_status.configured else "not_configured"
    except (SQLAlchemyError, OSError):
        logger.warning("Database health check failed", exc_info=True)
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        billcom=billcom,
    )


@router.get("/ready")
async def readiness_check(settings: SettingsDep, response: Response) -> dict[str, str]:
    """Not ready until an ENCRYPTION_KEY is present to read stored credentials."""
    if not settings.encryption_key:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "reason": "ENCRYPTION_KEY is not configured"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
