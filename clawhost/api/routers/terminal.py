"""Terminal router - inspect and operate the caller's gateway over SSH."""

import asyncio
from typing import Any, get_args

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
import structlog

from clawhost.models import Instance
from clawhost.schemas import TerminalInfo, TerminalRequest, TerminalStatus
from clawhost.schemas.terminal import TerminalAction
from clawhost.ssh import CommandProxy
from clawhost.ssh.parsers import is_allowed_command

from ..dependencies import get_command_proxy, get_user_instance

logger = structlog.get_logger()

router = APIRouter(prefix="/instance/terminal", tags=["terminal"])

TERMINAL_ACTIONS = frozenset(get_args(TerminalAction))


def _require_app_name(instance: Instance) -> str:
    if instance.provider != "fly":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Terminal access is only available for Fly.io instances",
        )
    if not instance.container_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Instance has no app name",
        )
    return instance.container_name


@router.get("", response_model=TerminalInfo)
async def get_terminal_info(
    instance: Instance = Depends(get_user_instance),
    proxy: CommandProxy = Depends(get_command_proxy),
) -> TerminalInfo:
    """Aggregate gateway health, doctor report, channels and pending devices.

    A query that fails is reported as null instead of failing the request.
    """
    app_name = _require_app_name(instance)

    results = await asyncio.gather(
        proxy.get_gateway_health(app_name),
        proxy.run_doctor(app_name),
        proxy.list_channels(app_name),
        proxy.list_pending_devices(app_name),
        return_exceptions=True,
    )
    sections = {}
    for name, result in zip(("health", "doctor", "channels", "devices"), results, strict=True):
        if isinstance(result, Exception):
            logger.warning(
                "terminal_query_failed", section=name, app_name=app_name, error=str(result)
            )
            result = None
        sections[name] = result

    return TerminalInfo(
        app_name=app_name,
        status=TerminalStatus(**sections),
    )


async def _dispatch(proxy: CommandProxy, app_name: str, request: TerminalRequest) -> Any:
    match request.action:
        case "list-devices":
            return {"devices": await proxy.list_pending_devices(app_name)}
        case "approve-device":
            return await proxy.approve_device(app_name, request.request_id)
        case "get-whatsapp-qr":
            return await proxy.get_whatsapp_qr(app_name)
        case "run-doctor":
            return await proxy.run_doctor(app_name)
        case "check-health":
            return await proxy.get_gateway_health(app_name)
        case "list-channels":
            return {"channels": await proxy.list_channels(app_name)}
        case "execute":
            return await proxy.execute_openclaw_command(app_name, request.command)


def _validate(request: TerminalRequest) -> None:
    if request.action == "approve-device" and not request.request_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing requestId")
    if request.action == "execute":
        if not request.command:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing command")
        if not is_allowed_command(request.command):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Command not allowed"
            )
    if request.action not in TERMINAL_ACTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown action: {request.action}"
        )


@router.post("")
async def run_terminal_action(
    request: TerminalRequest,
    instance: Instance = Depends(get_user_instance),
    proxy: CommandProxy = Depends(get_command_proxy),
) -> Any:
    """Run one terminal action against the caller's instance."""
    app_name = _require_app_name(instance)
    _validate(request)

    try:
        return await _dispatch(proxy, app_name, request)
    except Exception as e:
        logger.error(
            "terminal_action_failed", action=request.action, app_name=app_name, error=str(e)
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)}
        )
