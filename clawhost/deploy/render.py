"""Render backend: one image-backed web service per instance."""

import asyncio

from clawhost.clients import RenderClient
from clawhost.config import Settings
from clawhost.logging_config import get_logger
from clawhost.models import Instance

from .base import ProviderBackend, ProvisionedResource, ProvisionRequest
from .registry import register_backend

logger = get_logger(__name__)

RENDER_DASHBOARD_URL = "https://dashboard.render.com"
URL_POLL_ATTEMPTS = 60


@register_backend("render")
class RenderBackend(ProviderBackend):
    """Render has no public log API; logs point at the dashboard instead."""

    supports_logs = False

    def __init__(self, settings: Settings, client: RenderClient | None = None):
        super().__init__(settings)
        self.client = client or RenderClient(settings=settings)

    async def provision(self, request: ProvisionRequest) -> ProvisionedResource:
        service = await self.client.create_service(
            name=request.name,
            image=request.image,
            env=request.merged_env,
            plan=self.settings.render_plan,
            region=self.settings.render_region,
            start_command=request.start_command,
        )
        return ProvisionedResource(
            resource_id=service.id,
            resource_name=service.name,
            shell_url=self.client.get_shell_url(service.id),
        )

    async def wait_until_live(self, resource: ProvisionedResource) -> ProvisionedResource:
        """Wait for the first deploy to go live, then read the public URL."""
        service_id = resource.resource_id
        await asyncio.sleep(self.settings.render_initial_delay)

        deploys = await self.client.list_deploys(service_id, limit=1)
        if deploys:
            await self.client.wait_for_deploy(
                service_id,
                deploys[0].id,
                timeout=self.settings.deploy_timeout,
                poll_interval=self.settings.poll_interval,
            )

        resource.access_url = await self._poll_service_url(resource)
        return resource

    async def _poll_service_url(self, resource: ProvisionedResource) -> str:
        for _ in range(URL_POLL_ATTEMPTS):
            service = await self.client.get_service(resource.resource_id)
            if service.service_details.url:
                return service.service_details.url
            await asyncio.sleep(self.settings.poll_interval)

        fallback = f"https://{resource.resource_name}.onrender.com"
        logger.warning(
            "render_service_url_missing", service_id=resource.resource_id, fallback=fallback
        )
        return fallback

    async def destroy(self, instance: Instance) -> None:
        if instance.container_id:
            await self.client.delete_service(instance.container_id)

    async def stop(self, instance: Instance) -> None:
        await self.client.suspend_service(instance.container_id)

    async def start(self, instance: Instance) -> None:
        await self.client.resume_service(instance.container_id)

    async def restart(self, instance: Instance) -> None:
        await self.client.restart_service(instance.container_id)

    async def is_running(self, instance: Instance) -> bool:
        service = await self.client.get_service(instance.container_id)
        return service.is_running

    async def get_logs(self, instance: Instance, tail: int = 100) -> str:
        return (
            "Logs are available in the Render dashboard:\n"
            f"{instance.service_url or RENDER_DASHBOARD_URL}"
        )
