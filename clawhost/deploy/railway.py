"""Railway backend: one image service per instance inside a shared project."""

import asyncio

from clawhost.clients import RailwayClient
from clawhost.config import Settings
from clawhost.logging_config import get_logger
from clawhost.models import Instance

from .base import ProviderBackend, ProvisionedResource, ProvisionRequest
from .registry import register_backend

logger = get_logger(__name__)


@register_backend("railway")
class RailwayBackend(ProviderBackend):
    def __init__(self, settings: Settings, client: RailwayClient | None = None):
        super().__init__(settings)
        self.client = client or RailwayClient(settings=settings)

    async def provision(self, request: ProvisionRequest) -> ProvisionedResource:
        service = await self.client.create_service(request.name, request.image)
        try:
            await self.client.upsert_variables(service.id, request.merged_env)
            await self.client.update_service_instance(
                service.id,
                # Railway does not run the start command through a shell
                start_command=f"/bin/sh -c '{request.start_command}'",
                region=self.settings.railway_region,
            )
            await self.client.deploy_service(service.id)
        except Exception:
            # The id is not persisted yet, so a later destroy could not find this service
            await self._discard_service(service.id)
            raise
        return ProvisionedResource(resource_id=service.id, resource_name=service.name)

    async def _discard_service(self, service_id: str) -> None:
        try:
            await self.client.delete_service(service_id)
        except Exception as e:
            logger.warning("railway_service_cleanup_failed", service_id=service_id, error=str(e))
        else:
            logger.info("railway_service_discarded", service_id=service_id)

    async def wait_until_live(self, resource: ProvisionedResource) -> ProvisionedResource:
        await self.client.wait_for_deployment(
            resource.resource_id,
            timeout=self.settings.deploy_timeout,
            poll_interval=self.settings.poll_interval,
        )
        domain = await self.client.create_service_domain(resource.resource_id)

        logger.info("railway_dns_propagation_wait", service_id=resource.resource_id)
        await asyncio.sleep(self.settings.dns_propagation_delay)

        resource.access_url = f"https://{domain}"
        return resource

    async def destroy(self, instance: Instance) -> None:
        if instance.container_id:
            await self.client.delete_service(instance.container_id)

    async def stop(self, instance: Instance) -> None:
        await self.client.stop_deployment(instance.container_id)

    async def start(self, instance: Instance) -> None:
        await self.client.deploy_service(instance.container_id)

    async def restart(self, instance: Instance) -> None:
        await self.client.restart_deployment(instance.container_id)

    async def is_running(self, instance: Instance) -> bool:
        deployment = await self.client.get_latest_deployment(instance.container_id)
        return deployment is not None and deployment.is_running

    async def get_logs(self, instance: Instance, tail: int = 100) -> str:
        lines = await self.client.get_deployment_logs(instance.container_id, limit=tail)
        if not lines:
            return "No logs available"
        return "\n".join(line.message for line in lines)
