"""Instances router - deploy and manage the caller's OpenClaw instance."""

from fastapi import APIRouter, Depends, Query, status

from clawhost.deploy import DeploymentOrchestrator
from clawhost.models import DeploymentLog, Instance
from clawhost.openclaw import UserConfiguration
from clawhost.schemas import (
    DeploymentLogRead,
    DeploymentResult,
    HealthCheckResult,
    InstanceLogs,
    InstanceRead,
)

from ..dependencies import get_current_user_id, get_orchestrator, get_user_instance

router = APIRouter(prefix="/instances", tags=["instances"])


@router.post("", response_model=DeploymentResult, status_code=status.HTTP_201_CREATED)
async def deploy_instance(
    config: UserConfiguration,
    user_id: str = Depends(get_current_user_id),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
) -> DeploymentResult:
    """Deploy a new instance for the caller, replacing any existing one.

    Blocks until the resource is live; this takes minutes.
    """
    return await orchestrator.deploy_instance(user_id, config)


@router.get("/me", response_model=InstanceRead)
async def get_my_instance(instance: Instance = Depends(get_user_instance)) -> Instance:
    return instance


@router.post("/me/stop", response_model=InstanceRead)
async def stop_instance(
    instance: Instance = Depends(get_user_instance),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
) -> Instance:
    await orchestrator.stop_instance(instance.id)
    return await orchestrator.get_instance_by_id(instance.id)


@router.post("/me/start", response_model=InstanceRead)
async def start_instance(
    instance: Instance = Depends(get_user_instance),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
) -> Instance:
    await orchestrator.start_instance(instance.id)
    return await orchestrator.get_instance_by_id(instance.id)


@router.post("/me/restart", response_model=InstanceRead)
async def restart_instance(
    instance: Instance = Depends(get_user_instance),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
) -> Instance:
    await orchestrator.restart_instance(instance.id)
    return await orchestrator.get_instance_by_id(instance.id)


@router.get("/me/logs", response_model=InstanceLogs)
async def get_instance_logs(
    tail: int = Query(100, ge=1, le=1000, description="Number of log lines"),
    instance: Instance = Depends(get_user_instance),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
) -> InstanceLogs:
    logs = await orchestrator.get_instance_logs(instance.id, tail=tail)
    return InstanceLogs(instance_id=instance.id, logs=logs)


@router.post("/me/health", response_model=HealthCheckResult)
async def check_instance_health(
    instance: Instance = Depends(get_user_instance),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
) -> HealthCheckResult:
    """Ask the provider whether the instance runs. Updates its status."""
    healthy = await orchestrator.check_instance_health(instance.id)
    return HealthCheckResult(instance_id=instance.id, healthy=healthy)


@router.get("/me/deployments", response_model=list[DeploymentLogRead])
async def list_deployment_logs(
    instance: Instance = Depends(get_user_instance),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
) -> list[DeploymentLog]:
    """Deployment history of the caller's instance, oldest first."""
    return await orchestrator.get_deployment_logs(instance.id)
