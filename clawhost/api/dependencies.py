"""FastAPI dependencies for caller identity and service wiring."""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clawhost.config import Settings, get_settings
from clawhost.database import async_session_maker, get_async_session
from clawhost.deploy import DeploymentOrchestrator
from clawhost.models import Instance
from clawhost.ssh import CommandProxy


async def get_current_user_id(x_user_id: str = Header(..., alias="X-User-ID")) -> str:
    """Get the caller from the X-User-ID header set by the authenticating proxy.

    Raises 422 if header missing.
    """
    return x_user_id


async def get_user_instance(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_session),
) -> Instance:
    """Get the caller's instance.

    Raises 404 if the user has not deployed one.
    """
    result = await db.execute(select(Instance).where(Instance.user_id == user_id))
    instance = result.scalar_one_or_none()

    if not instance:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No instance found",
        )
    return instance


def get_orchestrator(settings: Settings = Depends(get_settings)) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(async_session_maker, settings)


def get_command_proxy(settings: Settings = Depends(get_settings)) -> CommandProxy:
    return CommandProxy(settings)
