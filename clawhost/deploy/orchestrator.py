"""Deployment orchestrator - drives an instance through its lifecycle.

One user owns at most one instance. Deploying again tears the previous one
down first. Every lifecycle action appends a DeploymentLog row.
"""

import asyncio
from datetime import UTC, datetime
import json
from typing import Any
import uuid
import weakref

import httpx
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clawhost.config import Settings
from clawhost.errors import DeploymentError, InstanceNotFoundError, MissingIdentifiersError
from clawhost.logging_config import get_logger
from clawhost.models import (
    DeploymentAction,
    DeploymentLog,
    DeploymentLogStatus,
    Instance,
    InstanceStatus,
)
from clawhost.openclaw import (
    WORKSPACE_DIR,
    UserConfiguration,
    build_environment_variables,
    generate_openclaw_config,
)
from clawhost.ports import allocate_port
from clawhost.schemas import DeploymentResult

from .base import ProviderBackend, ProvisionRequest
from .registry import get_backend

logger = get_logger(__name__)

CONFIG_PATH = "/home/node/.openclaw/openclaw.json"
START_SCRIPT = (
    "mkdir -p /home/node/.openclaw"
    f' && echo "$OPENCLAW_CONFIG" > {CONFIG_PATH}'
    " && exec node dist/index.js gateway"
)

# Serializes deployments per user within this process. An entry lives only while a
# deploy holds or awaits its lock.
_user_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()


def _user_lock(user_id: str) -> asyncio.Lock:
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _user_locks[user_id] = lock
    return lock


class DeploymentOrchestrator:
    """Deploys and manages OpenClaw instances on the configured provider."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        settings: Settings,
        backend: ProviderBackend | None = None,
    ):
        self.session_maker = session_maker
        self.settings = settings
        self.backend = backend or get_backend(settings.deploy_provider, settings)

    def _backend_for(self, instance: Instance) -> ProviderBackend:
        """Instances keep the provider they were deployed to."""
        if instance.provider == self.backend.name:
            return self.backend
        return get_backend(instance.provider, self.settings)

    # Persistence helpers

    async def _update_instance(self, instance_id: str, **values: Any) -> None:
        async with self.session_maker() as session:
            await session.execute(
                update(Instance).where(Instance.id == instance_id).values(**values)
            )
            await session.commit()

    async def _log_deployment(
        self,
        instance_id: str,
        action: DeploymentAction,
        status: DeploymentLogStatus,
        message: str,
        error: str | None = None,
    ) -> None:
        async with self.session_maker() as session:
            session.add(
                DeploymentLog(
                    instance_id=instance_id,
                    action=action.value,
                    status=status.value,
                    message=message,
                    error=error,
                )
            )
            await session.commit()

    async def get_instance(self, user_id: str) -> Instance | None:
        async with self.session_maker() as session:
            result = await session.execute(select(Instance).where(Instance.user_id == user_id))
            return result.scalar_one_or_none()

    async def get_instance_by_id(self, instance_id: str) -> Instance:
        async with self.session_maker() as session:
            instance = await session.get(Instance, instance_id)
        if instance is None:
            raise InstanceNotFoundError(f"Instance {instance_id} not found")
        return instance

    async def get_deployment_logs(self, instance_id: str) -> list[DeploymentLog]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(DeploymentLog)
                .where(DeploymentLog.instance_id == instance_id)
                .order_by(DeploymentLog.id)
            )
            return list(result.scalars().all())

    @staticmethod
    def _require_identifiers(instance: Instance) -> None:
        if not instance.has_identifiers:
            raise MissingIdentifiersError("Instance missing provider identifiers")

    # Deploy

    async def deploy_instance(self, user_id: str, config: UserConfiguration) -> DeploymentResult:
        """Deploy a fresh instance for the user, replacing any existing one.

        Returns a result even when the gateway failed its health check; check
        `status` (RUNNING or ERROR).

        Raises:
            DeploymentError: A provisioning step failed. The instance is left in ERROR.
        """
        async with _user_lock(user_id):
            return await self._deploy(user_id, config)

    async def _cleanup_existing(self, user_id: str) -> None:
        existing = await self.get_instance(user_id)
        if existing is None:
            return

        log = logger.bind(user_id=user_id, instance_id=existing.id)
        log.info("existing_instance_cleanup_started", provider=existing.provider)
        try:
            await self._backend_for(existing).destroy(existing)
        except Exception as e:
            # Resources may already be gone, or leak; neither blocks the redeploy
            log.warning("existing_instance_destroy_failed", error=str(e))

        try:
            async with self.session_maker() as session:
                instance = await session.get(Instance, existing.id)
                if instance is not None:
                    await session.delete(instance)
                    await session.commit()
        except Exception as e:
            log.warning("existing_instance_delete_failed", error=str(e))

    async def _create_instance(self, user_id: str) -> Instance:
        async with self.session_maker() as session:
            port = await allocate_port(session, self.settings.port_range_start)
            instance = Instance(
                user_id=user_id,
                provider=self.backend.name,
                port=port,
                status=InstanceStatus.DEPLOYING.value,
            )
            session.add(instance)
            await session.commit()
            return instance

    def _build_request(self, name: str, config: UserConfiguration, token: str) -> ProvisionRequest:
        openclaw_config = generate_openclaw_config(config, self.settings.gateway_port)
        return ProvisionRequest(
            name=name,
            image=self.settings.openclaw_image,
            env={
                "OPENCLAW_CONFIG": json.dumps(openclaw_config),
                "NODE_ENV": "production",
                "OPENCLAW_WORKSPACE": WORKSPACE_DIR,
            },
            secrets={"OPENCLAW_GATEWAY_TOKEN": token, **build_environment_variables(config)},
            start_command=START_SCRIPT,
            gateway_port=self.settings.gateway_port,
        )

    async def _deploy(self, user_id: str, config: UserConfiguration) -> DeploymentResult:
        provider = self.backend.name
        log = logger.bind(user_id=user_id, provider=provider)

        await self._cleanup_existing(user_id)

        instance = await self._create_instance(user_id)
        instance_id = instance.id
        log = log.bind(instance_id=instance_id, port=instance.port)
        log.info("deployment_started")
        await self._log_deployment(
            instance_id,
            DeploymentAction.DEPLOY,
            DeploymentLogStatus.IN_PROGRESS,
            f"Creating {provider} resources...",
        )

        try:
            name = self.backend.resource_name(user_id)
            created = await self.backend.prepare(name)
            if created:
                await self._update_instance(instance_id, container_name=created)

            gateway_token = str(uuid.uuid4())
            request = self._build_request(name, config, gateway_token)

            resource = await self.backend.provision(request)
            await self._update_instance(
                instance_id,
                container_id=resource.resource_id,
                container_name=resource.resource_name,
                gateway_token=gateway_token,
            )
            log.info("resource_provisioned", resource_id=resource.resource_id)

            resource = await self.backend.wait_until_live(resource)
            log.info("resource_live", access_url=resource.access_url)
        except Exception as e:
            log.exception("deployment_failed", error=str(e))
            await self._update_instance(instance_id, status=InstanceStatus.ERROR.value)
            await self._log_deployment(
                instance_id,
                DeploymentAction.DEPLOY,
                DeploymentLogStatus.FAILED,
                "Deployment failed",
                error=str(e),
            )
            raise DeploymentError(f"Deployment failed: {e}") from e

        await asyncio.sleep(self.settings.health_warmup_delay)
        healthy = await self._check_gateway(resource.access_url, gateway_token)
        status = InstanceStatus.RUNNING if healthy else InstanceStatus.ERROR

        await self._update_instance(
            instance_id,
            status=status.value,
            access_url=resource.access_url,
            service_url=resource.shell_url,
        )
        if healthy:
            await self._log_deployment(
                instance_id,
                DeploymentAction.DEPLOY,
                DeploymentLogStatus.SUCCESS,
                f"Instance deployed at {resource.access_url}",
            )
        else:
            await self._log_deployment(
                instance_id,
                DeploymentAction.DEPLOY,
                DeploymentLogStatus.PARTIAL,
                "Resource created but gateway health check failed",
            )

        log.info("deployment_completed", status=status.value, healthy=healthy)
        return DeploymentResult(
            instance_id=instance_id,
            resource_id=resource.resource_id,
            resource_name=resource.resource_name,
            port=instance.port,
            access_url=resource.access_url,
            shell_url=resource.shell_url,
            status=status.value,
        )

    async def _check_gateway(self, access_url: str, token: str) -> bool:
        """GET {access_url}/health with the gateway token. Never raises."""
        try:
            async with httpx.AsyncClient(timeout=self.settings.health_check_timeout) as client:
                response = await client.get(
                    f"{access_url}/health", headers={"Authorization": f"Bearer {token}"}
                )
        except httpx.HTTPError as e:
            logger.warning("gateway_health_check_failed", access_url=access_url, error=str(e))
            return False

        if not response.is_success:
            logger.warning(
                "gateway_health_check_unhealthy",
                access_url=access_url,
                status_code=response.status_code,
            )
        return response.is_success

    # Lifecycle

    async def stop_instance(self, instance_id: str) -> None:
        await self._run_lifecycle(
            instance_id,
            DeploymentAction.STOP,
            final_status=InstanceStatus.STOPPED,
            message="Instance stopped",
        )

    async def start_instance(self, instance_id: str) -> None:
        await self._run_lifecycle(
            instance_id,
            DeploymentAction.START,
            final_status=InstanceStatus.RUNNING,
            message="Instance started",
        )

    async def restart_instance(self, instance_id: str) -> None:
        await self._run_lifecycle(
            instance_id,
            DeploymentAction.RESTART,
            final_status=InstanceStatus.RUNNING,
            message="Instance restarted",
            pending_status=InstanceStatus.RESTARTING,
        )

    async def _run_lifecycle(
        self,
        instance_id: str,
        action: DeploymentAction,
        final_status: InstanceStatus,
        message: str,
        pending_status: InstanceStatus | None = None,
    ) -> None:
        """Run a stop/start/restart against the provider.

        Raises:
            InstanceNotFoundError: Unknown instance id.
            MissingIdentifiersError: Instance never got provider identifiers.
                Status is left untouched.
        """
        instance = await self.get_instance_by_id(instance_id)
        self._require_identifiers(instance)
        backend = self._backend_for(instance)
        log = logger.bind(instance_id=instance_id, action=action.value)

        if pending_status is not None:
            await self._update_instance(instance_id, status=pending_status.value)

        operation = {
            DeploymentAction.STOP: backend.stop,
            DeploymentAction.START: backend.start,
            DeploymentAction.RESTART: backend.restart,
        }[action]

        try:
            await operation(instance)
        except Exception as e:
            log.error("instance_action_failed", error=str(e))
            if pending_status is not None:
                await self._update_instance(instance_id, status=InstanceStatus.ERROR.value)
            await self._log_deployment(
                instance_id, action, DeploymentLogStatus.FAILED, f"{message} failed", error=str(e)
            )
            raise

        await self._update_instance(instance_id, status=final_status.value)
        await self._log_deployment(instance_id, action, DeploymentLogStatus.SUCCESS, message)
        log.info("instance_action_completed", status=final_status.value)

    async def check_instance_health(self, instance_id: str) -> bool:
        """Ask the provider whether the instance runs and record the result.

        Returns False on any failure, including unknown instances.
        """
        try:
            instance = await self.get_instance_by_id(instance_id)
            if not instance.has_identifiers:
                return False

            running = await self._backend_for(instance).is_running(instance)
            if running:
                status = InstanceStatus.RUNNING
            elif instance.status == InstanceStatus.STOPPED.value:
                # A user-stopped instance is expected to be down
                status = InstanceStatus.STOPPED
            else:
                status = InstanceStatus.ERROR

            await self._update_instance(
                instance_id, last_health_check=datetime.now(UTC), status=status.value
            )
            return running
        except Exception as e:
            logger.warning("instance_health_check_failed", instance_id=instance_id, error=str(e))
            return False

    async def get_instance_logs(self, instance_id: str, tail: int = 100) -> str:
        """Recent runtime logs of the instance.

        Raises:
            InstanceNotFoundError: Unknown instance id.
            MissingIdentifiersError: Provider has a log API but the instance has no ids.
        """
        instance = await self.get_instance_by_id(instance_id)
        backend = self._backend_for(instance)
        if backend.supports_logs:
            self._require_identifiers(instance)
        return await backend.get_logs(instance, tail=tail)
