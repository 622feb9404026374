"""Liveness and readiness of the control plane itself."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from clawhost.config import Settings, get_settings
from clawhost.database import get_async_session, ping
from clawhost.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(
    session: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Ready once the database answers. Reports the provider new deploys go to."""
    try:
        await ping(session)
    except Exception as e:
        logger.error("readiness_check_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable"
        ) from e
    return {"status": "ready", "deploy_provider": settings.deploy_provider}
