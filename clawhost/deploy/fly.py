"""Fly.io backend: one app with one machine per instance."""

import asyncio
import time

from clawhost.clients import FlyClient
from clawhost.config import Settings
from clawhost.logging_config import get_logger
from clawhost.models import Instance
from clawhost.schemas import FlyGuest, FlyService, FlyServicePort, MachineSpec

from .base import ProviderBackend, ProvisionedResource, ProvisionRequest, slugify
from .registry import register_backend

logger = get_logger(__name__)

MACHINE_POLL_INTERVAL = 3
MACHINE_MEMORY_MB = 512

BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


@register_backend("fly")
class FlyBackend(ProviderBackend):
    def __init__(self, settings: Settings, client: FlyClient | None = None):
        super().__init__(settings)
        self.client = client or FlyClient(settings=settings)

    def resource_name(self, user_id: str) -> str:
        # App names are global on Fly, so append a timestamp
        return f"openclaw-{slugify(user_id)}-{to_base36(int(time.time() * 1000))}"

    async def prepare(self, name: str) -> str | None:
        await self.client.verify_access()
        await self.client.create_app(name)
        return name

    async def provision(self, request: ProvisionRequest) -> ProvisionedResource:
        await self.client.set_secrets(request.name, request.secrets)

        spec = MachineSpec(
            image=request.image,
            env=request.env,
            cmd=["/bin/sh", "-c", request.start_command],
            region=self.settings.fly_region,
            guest=FlyGuest(cpu_kind="shared", cpus=1, memory_mb=MACHINE_MEMORY_MB),
            services=[
                FlyService(
                    protocol="tcp",
                    internal_port=request.gateway_port,
                    ports=[
                        FlyServicePort(port=443, handlers=["http", "tls"]),
                        FlyServicePort(port=80, handlers=["http"]),
                    ],
                )
            ],
        )
        machine = await self.client.create_machine(request.name, spec)
        return ProvisionedResource(resource_id=machine.id, resource_name=request.name)

    async def wait_until_live(self, resource: ProvisionedResource) -> ProvisionedResource:
        app_name = resource.resource_name
        await self.client.wait_for_machine_state(
            app_name,
            resource.resource_id,
            "started",
            timeout=self.settings.machine_start_timeout,
            poll_interval=MACHINE_POLL_INTERVAL,
        )
        await self.client.allocate_ip_address(app_name, "v6")

        logger.info("fly_dns_propagation_wait", app_name=app_name)
        await asyncio.sleep(self.settings.dns_propagation_delay)

        resource.access_url = self.client.get_app_url(app_name)
        return resource

    async def destroy(self, instance: Instance) -> None:
        if not instance.container_name:
            return
        app_name = instance.container_name
        # The app may exist without a machine when a deployment failed half way
        for machine in await self.client.list_machines(app_name):
            await self.client.delete_machine(app_name, machine.id)
        await self.client.delete_app(app_name)

    async def stop(self, instance: Instance) -> None:
        await self.client.stop_machine(instance.container_name, instance.container_id)

    async def start(self, instance: Instance) -> None:
        await self.client.start_machine(instance.container_name, instance.container_id)

    async def restart(self, instance: Instance) -> None:
        await self.client.restart_machine(instance.container_name, instance.container_id)

    async def is_running(self, instance: Instance) -> bool:
        machine = await self.client.get_machine(instance.container_name, instance.container_id)
        return machine.is_running

    async def get_logs(self, instance: Instance, tail: int = 100) -> str:
        return await self.client.get_machine_logs(
            instance.container_name, instance.container_id, limit=tail
        )
