"""Fly.io Machines API client.

Docs: https://fly.io/docs/machines/api/
Secrets and IP allocation go through the GraphQL API, the rest through REST.
"""

from typing import Any

from clawhost.config import Settings
from clawhost.errors import ProviderAPIError, ProviderConfigError
from clawhost.logging_config import get_logger
from clawhost.schemas import FlyApp, FlyIPAddress, FlyMachine, MachineSpec

from .base import ProviderClient, wait_for_state

logger = get_logger(__name__)

FLY_API_URL = "https://api.machines.dev/v1"
FLY_GRAPHQL_URL = "https://api.fly.io/graphql"

MACHINE_TERMINAL_STATES = frozenset({"failed", "destroyed"})

SET_SECRETS_MUTATION = """
mutation SetSecrets($input: SetSecretsInput!) {
  setSecrets(input: $input) {
    release {
      id
      version
    }
  }
}
"""

ALLOCATE_IP_MUTATION = """
mutation AllocateIPAddress($input: AllocateIPAddressInput!) {
  allocateIpAddress(input: $input) {
    ipAddress {
      id
      address
      type
    }
  }
}
"""


class FlyClient(ProviderClient):
    """Client for the Fly.io Machines API."""

    provider = "fly"
    base_url = FLY_API_URL

    def __init__(
        self,
        api_token: str | None = None,
        org_slug: str | None = None,
        settings: Settings | None = None,
    ):
        """Initialize Fly.io client.

        Args:
            api_token: Fly.io API token. Defaults to settings.fly_api_token.
            org_slug: Organization that owns created apps. Defaults to settings.fly_org_slug.
            settings: Settings to read defaults from.

        Raises:
            ProviderConfigError: Token or organization slug is missing.
        """
        api_token = api_token or (settings.fly_api_token if settings else None)
        org_slug = org_slug or (settings.fly_org_slug if settings else None)

        if not api_token:
            raise ProviderConfigError(
                "Missing FLY_API_TOKEN environment variable. "
                "Get one at: https://fly.io/user/personal_access_tokens"
            )
        if not org_slug:
            raise ProviderConfigError(
                "Missing FLY_ORG_SLUG environment variable. Find yours at: https://fly.io/dashboard"
            )

        super().__init__(api_token)
        self.org_slug = org_slug
        logger.debug("fly_client_initialized", org_slug=org_slug)

    async def verify_access(self) -> int:
        """Verify the API token can list apps. Returns the number of accessible apps."""
        data = await self._request("GET", "/apps", params={"org_slug": self.org_slug})
        apps = data.get("apps", []) if isinstance(data, dict) else data
        logger.info("fly_token_verified", apps=len(apps))
        return len(apps)

    async def create_app(self, name: str) -> FlyApp:
        logger.info("fly_app_create_started", app_name=name)
        data = await self._request(
            "POST", "/apps", json_body={"app_name": name, "org_slug": self.org_slug}
        )
        app = FlyApp.model_validate(data)
        logger.info("fly_app_created", app_name=name, app_id=app.id)
        return app

    async def delete_app(self, name: str) -> None:
        logger.info("fly_app_delete_started", app_name=name)
        await self._request("DELETE", f"/apps/{name}")
        logger.info("fly_app_deleted", app_name=name)

    async def app_exists(self, name: str) -> bool:
        try:
            await self._request("GET", f"/apps/{name}")
            return True
        except ProviderAPIError as e:
            if e.status_code == 404:  # noqa: PLR2004
                return False
            raise

    async def set_secrets(self, app_name: str, secrets: dict[str, str]) -> None:
        """Set encrypted app secrets through the GraphQL API."""
        logger.info("fly_secrets_set_started", app_name=app_name, count=len(secrets))
        await self._graphql(
            FLY_GRAPHQL_URL,
            SET_SECRETS_MUTATION,
            {
                "input": {
                    "appId": app_name,
                    "secrets": [{"key": k, "value": v} for k, v in secrets.items()],
                }
            },
        )
        logger.info("fly_secrets_set", app_name=app_name)

    async def create_machine(self, app_name: str, spec: MachineSpec) -> FlyMachine:
        logger.info("fly_machine_create_started", app_name=app_name, region=spec.region)

        machine_config: dict[str, Any] = {
            "image": spec.image,
            "env": spec.env,
            "guest": spec.guest.model_dump(),
            "restart": {"policy": "always"},
            "auto_destroy": False,
        }
        if spec.cmd:
            machine_config["init"] = {"cmd": spec.cmd}
        if spec.services:
            machine_config["services"] = [s.model_dump() for s in spec.services]

        data = await self._request(
            "POST",
            f"/apps/{app_name}/machines",
            json_body={
                "name": f"{app_name}-main",
                "region": spec.region,
                "config": machine_config,
            },
        )
        machine = FlyMachine.model_validate(data)
        logger.info("fly_machine_created", app_name=app_name, machine_id=machine.id)
        return machine

    async def get_machine(self, app_name: str, machine_id: str) -> FlyMachine:
        data = await self._request("GET", f"/apps/{app_name}/machines/{machine_id}")
        return FlyMachine.model_validate(data)

    async def list_machines(self, app_name: str) -> list[FlyMachine]:
        data = await self._request("GET", f"/apps/{app_name}/machines")
        return [FlyMachine.model_validate(item) for item in data or []]

    async def start_machine(self, app_name: str, machine_id: str) -> None:
        logger.info("fly_machine_start_started", app_name=app_name, machine_id=machine_id)
        await self._request("POST", f"/apps/{app_name}/machines/{machine_id}/start")
        logger.info("fly_machine_started", app_name=app_name, machine_id=machine_id)

    async def stop_machine(self, app_name: str, machine_id: str) -> None:
        logger.info("fly_machine_stop_started", app_name=app_name, machine_id=machine_id)
        await self._request("POST", f"/apps/{app_name}/machines/{machine_id}/stop")
        logger.info("fly_machine_stopped", app_name=app_name, machine_id=machine_id)

    async def restart_machine(self, app_name: str, machine_id: str, timeout: int = 60) -> None:
        logger.info("fly_machine_restart_started", app_name=app_name, machine_id=machine_id)
        await self._request(
            "POST",
            f"/apps/{app_name}/machines/{machine_id}/restart",
            params={"timeout": f"{timeout}s"},
        )
        logger.info("fly_machine_restarted", app_name=app_name, machine_id=machine_id)

    async def delete_machine(self, app_name: str, machine_id: str, force: bool = True) -> None:
        logger.info("fly_machine_delete_started", app_name=app_name, machine_id=machine_id)
        await self._request(
            "DELETE",
            f"/apps/{app_name}/machines/{machine_id}",
            params={"force": "true"} if force else None,
        )
        logger.info("fly_machine_deleted", app_name=app_name, machine_id=machine_id)

    async def wait_for_machine_state(
        self,
        app_name: str,
        machine_id: str,
        target_state: str,
        timeout: float = 120,
        poll_interval: float = 3,
    ) -> FlyMachine:
        """Poll a machine until it reaches `target_state`.

        Raises:
            ProviderTerminalStateError: Machine became failed or destroyed.
            ProviderTimeoutError: Target state not reached within timeout.
        """
        return await wait_for_state(
            lambda: self.get_machine(app_name, machine_id),
            get_state=lambda m: m.state,
            target_state=target_state,
            terminal_states=MACHINE_TERMINAL_STATES,
            timeout=timeout,
            poll_interval=poll_interval,
            provider=self.provider,
            resource=f"machine {machine_id}",
        )

    async def get_machine_logs(self, app_name: str, machine_id: str, limit: int = 100) -> str:
        """Fetch recent machine logs.

        Fly streams logs through NATS; the REST endpoint is best effort, so a
        failure yields a hint instead of an error.
        """
        try:
            data = await self._request(
                "GET",
                f"/apps/{app_name}/machines/{machine_id}/logs",
                params={"limit": limit},
            )
        except ProviderAPIError as e:
            logger.warning(
                "fly_logs_fetch_failed", app_name=app_name, machine_id=machine_id, error=str(e)
            )
            return f"Failed to fetch logs. Use `flyctl logs --app {app_name}` instead."
        return data.get("logs") or "No logs available"

    async def allocate_ip_address(self, app_name: str, ip_type: str = "v6") -> FlyIPAddress:
        """Allocate a public (v4/v6) or private_v6 address for the app."""
        logger.info("fly_ip_allocate_started", app_name=app_name, ip_type=ip_type)
        data = await self._graphql(
            FLY_GRAPHQL_URL,
            ALLOCATE_IP_MUTATION,
            {"input": {"appId": app_name, "type": ip_type}},
        )
        ip = FlyIPAddress.model_validate(data["allocateIpAddress"]["ipAddress"])
        logger.info("fly_ip_allocated", app_name=app_name, address=ip.address)
        return ip

    def get_app_hostname(self, app_name: str) -> str:
        return f"{app_name}.fly.dev"

    def get_app_url(self, app_name: str) -> str:
        return f"https://{self.get_app_hostname(app_name)}"
